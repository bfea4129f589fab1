"""Schemas for quota records and quota reports."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class QuotaRecordModel(BaseModel):
    """On-disk form of a single identity's bucket."""

    model_config = ConfigDict(populate_by_name=True)

    identity: str = Field(alias="userId", min_length=1)
    tokens: float = Field(ge=0)
    last_refill: int = Field(alias="lastRefill")


class QuotaStateOut(BaseModel):
    """API response payload for a quota query."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    allowed: bool
    remaining_tokens: int = Field(alias="remainingTokens")
    reset_at: int = Field(alias="resetAt")
