# src/download_gateway/models/__init__.py
"""SQLAlchemy models for the download gateway."""

from .quota import QuotaRecordRow

__all__ = ["QuotaRecordRow"]
