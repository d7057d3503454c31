from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from server.db.session import get_db_session
from server.features.shared.auth import get_current_user_id

from .errors import GroupNotFoundError, GroupValidationError
from .service import (
    add_contact_to_group,
    create_group,
    delete_group,
    get_group,
    list_groups,
    remove_contact_from_group,
    update_group,
)
from .types import GroupCreateInput, GroupMembershipResponse, GroupResponse, GroupUpdateInput

router = APIRouter(prefix="/api/groups", tags=["groups"])


def _raise_http_error(exc: Exception) -> None:
    if isinstance(exc, GroupNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, GroupValidationError):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    raise exc


@router.get("", response_model=list[GroupResponse])
async def get_groups(
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> list[GroupResponse]:
    return await list_groups(session, user_id=user_id)


@router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
async def post_group(
    payload: GroupCreateInput,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> GroupResponse:
    try:
        return await create_group(session, user_id=user_id, payload=payload)
    except Exception as exc:
        _raise_http_error(exc)


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group_by_id(
    group_id: str,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> GroupResponse:
    try:
        return await get_group(session, user_id=user_id, group_id=group_id)
    except Exception as exc:
        _raise_http_error(exc)


@router.patch("/{group_id}", response_model=GroupResponse)
async def patch_group(
    group_id: str,
    payload: GroupUpdateInput,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> GroupResponse:
    try:
        return await update_group(session, user_id=user_id, group_id=group_id, payload=payload)
    except Exception as exc:
        _raise_http_error(exc)


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_group(
    group_id: str,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> Response:
    try:
        await delete_group(session, user_id=user_id, group_id=group_id)
    except Exception as exc:
        _raise_http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{group_id}/contacts/{contact_id}", response_model=GroupMembershipResponse)
async def post_group_member(
    group_id: str,
    contact_id: str,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> GroupMembershipResponse:
    try:
        return await add_contact_to_group(session, user_id=user_id, group_id=group_id, contact_id=contact_id)
    except Exception as exc:
        _raise_http_error(exc)


@router.delete("/{group_id}/contacts/{contact_id}", response_model=GroupMembershipResponse)
async def delete_group_member(
    group_id: str,
    contact_id: str,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> GroupMembershipResponse:
    try:
        return await remove_contact_from_group(
            session,
            user_id=user_id,
            group_id=group_id,
            contact_id=contact_id,
        )
    except Exception as exc:
        _raise_http_error(exc)
