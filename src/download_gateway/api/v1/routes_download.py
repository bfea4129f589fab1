"""Captcha-gated download endpoints.

`GET /download` and `GET /api/captcha-data` turn a signed download capability
into a proof-of-work challenge; `POST /verify` redeems the solved challenge
and streams the file.
"""
from __future__ import annotations

import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import FileResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from download_gateway.api.v1.dependencies import GatewayDep
from download_gateway.core.errors import MalformedInputError
from download_gateway.schemas.pow import ChallengeIssuedOut, ChallengeModel, VerifyRequest
from download_gateway.services.challenges import IssuedChallenge
from download_gateway.services.gateway import MSG_MISSING_PARAMS, MSG_INVALID_SIGNATURE
from download_gateway.services.signing import CapabilityClaims
from download_gateway.utils.http import content_disposition

logger = logging.getLogger(__name__)

MSG_INVALID_REQUEST = "Invalid request data"

router = APIRouter(tags=["download"])

OptionalParam = Annotated[str | None, Query()]


def _issued_out(claims: CapabilityClaims, issued: IssuedChallenge) -> ChallengeIssuedOut:
    return ChallengeIssuedOut(
        challenge=ChallengeModel.from_challenge(issued.challenge),
        token=issued.token,
        signature=issued.signature,
        user_id=claims.identity,
        file_id=claims.resource_id or "",
        expires_at=issued.expires_at,
    )


@router.get("/download", response_model=ChallengeIssuedOut)
async def start_download(
    gateway: GatewayDep,
    user_id: Annotated[str | None, Query(alias="userId")] = None,
    file_id: Annotated[str | None, Query(alias="fileId")] = None,
    expires_at: Annotated[str | None, Query(alias="expiresAt")] = None,
    signature: OptionalParam = None,
) -> ChallengeIssuedOut:
    """Verify a download capability and issue the captcha that unlocks it."""
    claims = gateway.authenticate_download(user_id, file_id, expires_at, signature)
    return _issued_out(claims, gateway.issue_challenge(claims))


@router.get("/api/captcha-data", response_model=ChallengeIssuedOut)
async def captcha_data(
    gateway: GatewayDep,
    user_id: Annotated[str | None, Query(alias="userId")] = None,
    file_id: Annotated[str | None, Query(alias="fileId")] = None,
    expires_at: Annotated[str | None, Query(alias="expiresAt")] = None,
    sig: OptionalParam = None,
) -> ChallengeIssuedOut:
    """Same as `/download` for client-side rendered captcha pages."""
    claims = gateway.authenticate_download(
        user_id,
        file_id,
        expires_at,
        sig,
        missing_message=MSG_MISSING_PARAMS,
        signature_message=MSG_INVALID_SIGNATURE,
    )
    return _issued_out(claims, gateway.issue_challenge(claims))


async def _read_submission(request: Request) -> VerifyRequest:
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
            form = await request.form()
            payload: Any = {key: value for key, value in form.items() if isinstance(value, str)}
        else:
            payload = await request.json()
        return VerifyRequest.model_validate(payload)
    except (ValidationError, json.JSONDecodeError, UnicodeDecodeError) as err:
        logger.info("Invalid captcha verification request: %s", err)
        raise MalformedInputError(MSG_INVALID_REQUEST) from err


@router.post("/verify")
async def verify_download(request: Request, gateway: GatewayDep) -> FileResponse:
    """Redeem a solved captcha and stream the requested file."""
    submission = await _read_submission(request)
    # Solution hashing is CPU bound; keep it off the event loop.
    grant = await run_in_threadpool(gateway.redeem, submission)
    return FileResponse(
        grant.file.absolute_path,
        media_type=grant.file.mime_type,
        headers={
            "Content-Disposition": content_disposition(grant.file.name),
            "X-RateLimit-Remaining": str(grant.quota.remaining_tokens),
        },
    )
