"""Schemas related to proof-of-work challenges."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from download_gateway.core.pow import PowChallenge


class ChallengeModel(BaseModel):
    """Wire form of a challenge descriptor."""

    model_config = ConfigDict(extra="forbid")

    c: StrictInt = Field(ge=1)
    s: StrictInt = Field(ge=1)
    d: StrictInt = Field(ge=1)

    @classmethod
    def from_challenge(cls, challenge: PowChallenge) -> ChallengeModel:
        return cls(**challenge.to_wire())

    def to_challenge(self) -> PowChallenge:
        return PowChallenge(count=self.c, salt_length=self.s, difficulty=self.d)


class ChallengeIssuedOut(BaseModel):
    """API response payload for issuing a proof-of-work challenge."""

    model_config = ConfigDict(populate_by_name=True)

    challenge: ChallengeModel
    token: str
    signature: str
    user_id: str = Field(alias="userId")
    file_id: str = Field(alias="fileId")
    expires_at: int = Field(alias="expiresAt")


class VerifyRequest(BaseModel):
    """Solution submission, sent as JSON or as a urlencoded form.

    `challenge` is the JSON-encoded descriptor and `solution` a comma-separated
    nonce list. `expiresAt` and `sig` optionally carry the download capability
    the challenge was issued for.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1)
    file_id: str = Field(alias="fileId", min_length=1)
    token: str = Field(min_length=1)
    challenge: str = Field(min_length=1)
    signature: str = Field(min_length=1)
    solution: str = Field(min_length=1)
    expires_at: str | None = Field(default=None, alias="expiresAt")
    sig: str | None = None
