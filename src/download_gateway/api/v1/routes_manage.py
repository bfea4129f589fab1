"""Endpoints authorized by a management capability.

Management capabilities skip the captcha and the download quota.
"""
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import FileResponse
from starlette.concurrency import run_in_threadpool

from download_gateway.api.v1.dependencies import GatewayDep
from download_gateway.schemas.files import FileOut, ManageDataOut
from download_gateway.schemas.quota import QuotaStateOut
from download_gateway.services.gateway import MSG_MISSING_PARAMS
from download_gateway.utils.http import content_disposition

router = APIRouter(tags=["manage"])

UserIdParam = Annotated[str | None, Query(alias="userId")]
ExpiresAtParam = Annotated[str | None, Query(alias="expiresAt")]
SignatureParam = Annotated[str | None, Query()]


@router.get("/manage")
async def manage_session(
    gateway: GatewayDep,
    user_id: UserIdParam = None,
    expires_at: ExpiresAtParam = None,
    signature: SignatureParam = None,
) -> dict[str, object]:
    """Confirm a management link and report who it belongs to."""
    claims = gateway.authenticate_manage(user_id, expires_at, signature)
    return {"userId": claims.identity, "expiresAt": claims.expires_at}


@router.get("/api/manage-data", response_model=ManageDataOut)
async def manage_data(
    gateway: GatewayDep,
    user_id: UserIdParam = None,
    expires_at: ExpiresAtParam = None,
    signature: SignatureParam = None,
) -> ManageDataOut:
    """List the catalog for an authenticated manager."""
    claims = gateway.authenticate_manage(
        user_id, expires_at, signature, missing_message=MSG_MISSING_PARAMS
    )
    files = [
        FileOut(
            id=record.id,
            name=record.name,
            path=record.path,
            size=record.size,
            mtime=record.mtime,
            mime_type=record.mime_type,
        )
        for record in gateway.list_files()
    ]
    return ManageDataOut(user_id=claims.identity, expires_at=claims.expires_at, files=files)


@router.get("/api/quota", response_model=QuotaStateOut)
async def quota_state(
    gateway: GatewayDep,
    user_id: UserIdParam = None,
    expires_at: ExpiresAtParam = None,
    signature: SignatureParam = None,
) -> QuotaStateOut:
    """Report the caller's download quota without consuming it."""
    claims = gateway.authenticate_manage(
        user_id, expires_at, signature, missing_message=MSG_MISSING_PARAMS
    )
    state = await run_in_threadpool(gateway.quota_state, claims.identity)
    return QuotaStateOut(
        user_id=claims.identity,
        allowed=state.allowed,
        remaining_tokens=state.remaining_tokens,
        reset_at=state.reset_at,
    )


@router.get("/manage/download/{file_id}")
async def manage_download(
    file_id: str,
    gateway: GatewayDep,
    user_id: UserIdParam = None,
    expires_at: ExpiresAtParam = None,
    signature: SignatureParam = None,
) -> FileResponse:
    """Stream a file directly to an authenticated manager."""
    claims = gateway.authenticate_manage(user_id, expires_at, signature)
    record = gateway.require_file(claims.identity, file_id)
    return FileResponse(
        record.absolute_path,
        media_type=record.mime_type,
        headers={"Content-Disposition": content_disposition(record.name)},
    )
