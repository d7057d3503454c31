from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from server.db.session import get_db_session
from server.features.shared.auth import get_current_user_id

from .errors import ConfigEntryConflictError, ConfigEntryNotFoundError, ConfigEntryValidationError
from .service import (
    create_config_entry,
    delete_config_entry,
    list_config_entries,
    resolve_sender_identity,
    to_sender_identity_response,
    update_config_entry,
)
from .types import ConfigEntryCreate, ConfigEntryPatch, ConfigEntryResponse, SenderIdentityResponse

router = APIRouter(prefix="/api/settings", tags=["settings"])


def _raise_http_error(exc: Exception) -> None:
    if isinstance(exc, ConfigEntryNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, ConfigEntryValidationError):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if isinstance(exc, ConfigEntryConflictError):
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    raise exc


@router.get("/config", response_model=list[ConfigEntryResponse])
async def get_config_entries(
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> list[ConfigEntryResponse]:
    return await list_config_entries(session, user_id=user_id)


@router.post("/config", response_model=ConfigEntryResponse, status_code=status.HTTP_201_CREATED)
async def post_config_entry(
    payload: ConfigEntryCreate,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> ConfigEntryResponse:
    try:
        return await create_config_entry(session, user_id=user_id, payload=payload)
    except Exception as exc:
        _raise_http_error(exc)


@router.patch("/config/{entry_id}", response_model=ConfigEntryResponse)
async def patch_config_entry(
    entry_id: str,
    payload: ConfigEntryPatch,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> ConfigEntryResponse:
    try:
        return await update_config_entry(session, user_id=user_id, entry_id=entry_id, payload=payload)
    except Exception as exc:
        _raise_http_error(exc)


@router.delete("/config/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_config_entry(
    entry_id: str,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> Response:
    try:
        await delete_config_entry(session, user_id=user_id, entry_id=entry_id)
    except Exception as exc:
        _raise_http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/sender", response_model=SenderIdentityResponse)
async def get_sender_identity(
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> SenderIdentityResponse:
    identity = await resolve_sender_identity(session, user_id=user_id)
    return to_sender_identity_response(identity)
