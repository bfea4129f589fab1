# src/download_gateway/main.py
"""Main entry point for the download gateway."""

from __future__ import annotations

import logging
import math
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from download_gateway.api.v1 import api_v1
from download_gateway.core.errors import GatewayError, QuotaExceededError
from download_gateway.core.settings import settings
from download_gateway.db.time import MILLISECONDS_PER_SECOND, now_ms
from download_gateway.services import build_gateway
from download_gateway.services.gateway import DownloadGateway

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging for the service process."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Render gateway errors as `{"error": message}` with their status."""
    headers: dict[str, str] = {}
    if isinstance(exc, QuotaExceededError):
        retry_after = max(0, exc.reset_at - now_ms()) / MILLISECONDS_PER_SECOND
        headers["Retry-After"] = str(math.ceil(retry_after))
    return JSONResponse({"error": exc.message}, status_code=exc.status_code, headers=headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected failures and answer with a generic 500."""
    logger.error("Unhandled error in request handler for %s", request.url.path, exc_info=exc)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


def create_app(gateway: DownloadGateway | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        gateway: Pre-wired gateway; built from settings at startup when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "gateway", None) is None:
            configure_logging(settings.log_level)
            app.state.gateway = build_gateway(settings)
            logger.info("Download gateway ready at %s", settings.web_server_base_url)
        yield

    app = FastAPI(
        title=settings.app_name,
        description="Captcha- and quota-gated file downloads",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.gateway = gateway
    app.add_exception_handler(GatewayError, gateway_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(api_v1)

    @app.get("/health")
    async def health_check() -> dict[str, object]:
        """Health check endpoint to verify the service is running."""
        return {"status": "ok", "timestamp": now_ms()}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "download_gateway.main:app",
        host=settings.web_server_host,
        port=settings.web_server_port,
        reload=settings.debug,
    )
