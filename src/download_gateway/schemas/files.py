"""Schemas describing catalog entries exposed to management clients."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class FileOut(BaseModel):
    """A single catalog entry."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    path: str
    size: int
    mtime: int
    mime_type: str = Field(alias="mimeType")


class ManageDataOut(BaseModel):
    """Payload for the management listing endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    expires_at: int = Field(alias="expiresAt")
    files: list[FileOut]
