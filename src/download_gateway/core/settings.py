"""Application settings and configuration.

This module defines all configuration options for the download gateway.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Download Gateway", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Signing secret shared by capability URLs and challenge bindings
    signing_secret: str = Field(alias="SIGNING_SECRET")

    # Web server
    web_server_host: str = Field(default="0.0.0.0", alias="WEB_SERVER_HOST")
    web_server_port: int = Field(default=3000, alias="WEB_SERVER_PORT")
    web_server_base_url: str = Field(
        default="http://localhost:3000",
        alias="WEB_SERVER_BASE_URL",
    )
    url_expiry_sec: int = Field(default=600, alias="URL_EXPIRY_SEC")

    # Proof-of-work captcha
    captcha_challenge_count: int = Field(default=50, alias="CAPTCHA_CHALLENGE_COUNT")
    captcha_salt_length: int = Field(default=32, alias="CAPTCHA_SALT_LENGTH")
    captcha_difficulty: int = Field(default=4, alias="CAPTCHA_DIFFICULTY")

    # Download quota (leaky bucket)
    rate_limit_downloads: int = Field(default=10, alias="RATE_LIMIT_DOWNLOADS")
    rate_limit_window_sec: int = Field(default=3600, alias="RATE_LIMIT_WINDOW_SEC")
    quota_backend: Literal["sql", "file"] = Field(default="sql", alias="QUOTA_BACKEND")
    quota_storage_dir: str = Field(default="./data/rate-limits", alias="QUOTA_STORAGE_DIR")

    # Database configuration
    database_url: str = Field(default="sqlite:///./gateway.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # File catalog
    files_directory: str = Field(default="./files", alias="FILES_DIRECTORY")
    file_extensions: str = Field(
        default=".pdf,.txt,.doc,.docx,.zip,.tar,.gz",
        alias="FILE_EXTENSIONS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def allowed_extensions(self) -> list[str]:
        """Return the configured file extensions as a normalized list."""
        return [ext.strip().lower() for ext in self.file_extensions.split(",") if ext.strip()]

    @property
    def url_expiry_ms(self) -> int:
        """Return the capability and challenge lifetime in milliseconds."""
        return self.url_expiry_sec * 1000


settings = Settings()  # type: ignore[call-arg]
