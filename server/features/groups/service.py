from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from server.features.shared.ids import to_uuid
from server.features.shared.text_sanitize import (
    log_sanitization_stats,
    sanitize_optional_text,
    sanitize_text,
)

from . import repo
from .errors import GroupNotFoundError, GroupValidationError
from .types import (
    GroupCreateInput,
    GroupMembershipResponse,
    GroupResponse,
    GroupUpdateInput,
    GroupWithCount,
)

logger = logging.getLogger(__name__)


def _parse_id(value: UUID | str, *, field_name: str) -> UUID:
    try:
        return to_uuid(value)
    except ValueError as exc:
        raise GroupValidationError(f"Invalid {field_name}.") from exc


def _clean_name(value: str) -> str:
    normalized, stats = sanitize_text(value, strip=True)
    log_sanitization_stats(logger, location="groups.clean_name", stats=stats)
    if not normalized:
        raise GroupValidationError("Group name cannot be empty.")
    return normalized


def _clean_description(value: str | None) -> str | None:
    normalized, stats = sanitize_optional_text(value, strip=True)
    log_sanitization_stats(logger, location="groups.clean_description", stats=stats)
    return normalized or None


def _to_response(item: GroupWithCount) -> GroupResponse:
    return GroupResponse(
        id=str(item.id),
        name=item.name,
        description=item.description,
        contact_count=item.contact_count,
        created_at=item.created_at,
        updated_at=item.updated_at,
    )


async def list_groups(session: AsyncSession, *, user_id: UUID) -> list[GroupResponse]:
    return [_to_response(item) for item in await repo.list_groups(session, user_id=user_id)]


async def get_group(session: AsyncSession, *, user_id: UUID, group_id: UUID | str) -> GroupResponse:
    item = await repo.get_group_with_count(
        session,
        user_id=user_id,
        group_id=_parse_id(group_id, field_name="group_id"),
    )
    return _to_response(item)


async def create_group(session: AsyncSession, *, user_id: UUID, payload: GroupCreateInput) -> GroupResponse:
    row = await repo.create_group(
        session,
        user_id=user_id,
        name=_clean_name(payload.name),
        description=_clean_description(payload.description),
    )
    return _to_response(
        GroupWithCount(
            id=row.id,
            name=row.name,
            description=row.description,
            contact_count=0,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
    )


async def update_group(
    session: AsyncSession,
    *,
    user_id: UUID,
    group_id: UUID | str,
    payload: GroupUpdateInput,
) -> GroupResponse:
    parsed_id = _parse_id(group_id, field_name="group_id")
    row = await repo.get_group(session, user_id=user_id, group_id=parsed_id)
    patch_data = payload.model_dump(exclude_unset=True)
    name = _clean_name(patch_data["name"]) if patch_data.get("name") is not None else None
    description = None
    clear_description = False
    if "description" in patch_data:
        description = _clean_description(patch_data["description"])
        clear_description = description is None
    await repo.update_group(
        session,
        row=row,
        name=name,
        description=description,
        clear_description=clear_description,
    )
    return await get_group(session, user_id=user_id, group_id=parsed_id)


async def delete_group(session: AsyncSession, *, user_id: UUID, group_id: UUID | str) -> None:
    """Deleting a group unlinks its members; the contacts themselves are kept."""
    row = await repo.get_group(
        session,
        user_id=user_id,
        group_id=_parse_id(group_id, field_name="group_id"),
    )
    await repo.delete_group(session, row=row)


async def _resolve_membership(
    session: AsyncSession,
    *,
    user_id: UUID,
    group_id: UUID | str,
    contact_id: UUID | str,
) -> tuple[UUID, UUID]:
    parsed_group = _parse_id(group_id, field_name="group_id")
    parsed_contact = _parse_id(contact_id, field_name="contact_id")
    await repo.get_group(session, user_id=user_id, group_id=parsed_group)
    if not await repo.contact_is_owned(session, user_id=user_id, contact_id=parsed_contact):
        raise GroupNotFoundError(f"Contact '{parsed_contact}' was not found.")
    return parsed_group, parsed_contact


async def add_contact_to_group(
    session: AsyncSession,
    *,
    user_id: UUID,
    group_id: UUID | str,
    contact_id: UUID | str,
) -> GroupMembershipResponse:
    parsed_group, parsed_contact = await _resolve_membership(
        session,
        user_id=user_id,
        group_id=group_id,
        contact_id=contact_id,
    )
    await repo.add_member(session, group_id=parsed_group, contact_id=parsed_contact)
    return GroupMembershipResponse(group_id=str(parsed_group), contact_id=str(parsed_contact), member=True)


async def remove_contact_from_group(
    session: AsyncSession,
    *,
    user_id: UUID,
    group_id: UUID | str,
    contact_id: UUID | str,
) -> GroupMembershipResponse:
    parsed_group, parsed_contact = await _resolve_membership(
        session,
        user_id=user_id,
        group_id=group_id,
        contact_id=contact_id,
    )
    await repo.remove_member(session, group_id=parsed_group, contact_id=parsed_contact)
    return GroupMembershipResponse(group_id=str(parsed_group), contact_id=str(parsed_contact), member=False)
