# src/download_gateway/models/quota.py
"""Durable leaky-bucket state, one row per identity."""

from sqlalchemy import BigInteger, Float, Text
from sqlalchemy.orm import Mapped, mapped_column

from download_gateway.db.session import Base


class QuotaRecordRow(Base):
    """Token bucket of a single identity."""

    __tablename__ = "quota_records"

    identity: Mapped[str] = mapped_column(Text, primary_key=True)
    # Fractional between consumptions; only reported values are floored.
    tokens: Mapped[float] = mapped_column(Float, nullable=False)
    # Unix milliseconds of the last refill computation.
    last_refill: Mapped[int] = mapped_column(BigInteger, nullable=False)
