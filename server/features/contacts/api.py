from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from server.db.session import get_db_session
from server.features.shared.auth import get_current_user_id

from .errors import ContactConflictError, ContactNotFoundError, ContactValidationError
from .service import create_contact, delete_contact, get_contact, import_contacts, list_contacts, update_contact
from .types import (
    ContactCreateInput,
    ContactImportInput,
    ContactImportResult,
    ContactResponse,
    ContactStatus,
    ContactUpdateInput,
)

router = APIRouter(prefix="/api/contacts", tags=["contacts"])


def _raise_http_error(exc: Exception) -> None:
    if isinstance(exc, ContactNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, ContactValidationError):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if isinstance(exc, ContactConflictError):
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    raise exc


@router.get("", response_model=list[ContactResponse])
async def get_contacts(
    q: str = Query(default=""),
    contact_status: ContactStatus | None = Query(default=None, alias="status"),
    group_id: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> list[ContactResponse]:
    try:
        return await list_contacts(
            session,
            user_id=user_id,
            q=q,
            status=contact_status,
            group_id=group_id,
            limit=limit,
            offset=offset,
        )
    except Exception as exc:
        _raise_http_error(exc)


@router.post("", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
async def post_contact(
    payload: ContactCreateInput,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> ContactResponse:
    try:
        return await create_contact(session, user_id=user_id, payload=payload)
    except Exception as exc:
        _raise_http_error(exc)


@router.post("/import", response_model=ContactImportResult)
async def post_contact_import(
    payload: ContactImportInput,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> ContactImportResult:
    try:
        return await import_contacts(session, user_id=user_id, contacts=payload.contacts)
    except Exception as exc:
        _raise_http_error(exc)


@router.get("/{contact_id}", response_model=ContactResponse)
async def get_contact_by_id(
    contact_id: str,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> ContactResponse:
    try:
        return await get_contact(session, user_id=user_id, contact_id=contact_id)
    except Exception as exc:
        _raise_http_error(exc)


@router.patch("/{contact_id}", response_model=ContactResponse)
async def patch_contact(
    contact_id: str,
    payload: ContactUpdateInput,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> ContactResponse:
    try:
        return await update_contact(session, user_id=user_id, contact_id=contact_id, payload=payload)
    except Exception as exc:
        _raise_http_error(exc)


@router.delete("/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_contact(
    contact_id: str,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> Response:
    try:
        await delete_contact(session, user_id=user_id, contact_id=contact_id)
    except Exception as exc:
        _raise_http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
