"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .files import FileOut, ManageDataOut
from .pow import ChallengeIssuedOut, ChallengeModel, VerifyRequest
from .quota import QuotaRecordModel, QuotaStateOut

__all__ = [
    "ChallengeIssuedOut", "ChallengeModel", "VerifyRequest",
    "FileOut", "ManageDataOut",
    "QuotaRecordModel", "QuotaStateOut",
]
