from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from server.db.models import Contact
from server.features.groups import repo as groups_repo
from server.features.groups.types import GroupSummary
from server.features.shared.ids import to_uuid
from server.features.shared.text_sanitize import (
    log_sanitization_stats,
    sanitize_optional_text,
    sanitize_text,
)

from . import repo
from .errors import ContactConflictError, ContactValidationError
from .types import (
    ContactCreateInput,
    ContactImportResult,
    ContactResponse,
    ContactStatus,
    ContactUpdateInput,
)

logger = logging.getLogger(__name__)


def _parse_id(value: UUID | str, *, field_name: str) -> UUID:
    try:
        return to_uuid(value)
    except ValueError as exc:
        raise ContactValidationError(f"Invalid {field_name}.") from exc


def _clean_name(value: str, *, field_name: str) -> str:
    normalized, stats = sanitize_text(value, strip=True)
    log_sanitization_stats(logger, location=f"contacts.clean_name.{field_name}", stats=stats)
    if not normalized:
        raise ContactValidationError(f"{field_name} cannot be empty.")
    return normalized


def _clean_phone(value: str | None) -> str | None:
    normalized, stats = sanitize_optional_text(value, strip=True)
    log_sanitization_stats(logger, location="contacts.clean_phone", stats=stats)
    return normalized


def _to_response(row: Contact) -> ContactResponse:
    groups = [
        GroupSummary(id=str(link.group.id), name=link.group.name)
        for link in row.group_links
        if link.group is not None
    ]
    groups.sort(key=lambda item: item.name.lower())
    return ContactResponse(
        id=str(row.id),
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        phone=row.phone,
        status=row.status,
        groups=groups,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


async def _resolve_group_ids(
    session: AsyncSession,
    *,
    user_id: UUID,
    group_ids: list[str],
) -> list[UUID]:
    parsed = list(dict.fromkeys(_parse_id(item, field_name="group_id") for item in group_ids))
    owned = await groups_repo.find_owned_group_ids(session, user_id=user_id, group_ids=parsed)
    missing = [str(item) for item in parsed if item not in owned]
    if missing:
        raise ContactValidationError(f"Unknown group ids: {', '.join(missing)}.")
    return parsed


def _create_fields(payload: ContactCreateInput) -> dict[str, Any]:
    return {
        "email": payload.email.strip().lower(),
        "first_name": _clean_name(payload.first_name, field_name="first_name"),
        "last_name": _clean_name(payload.last_name, field_name="last_name"),
        "phone": _clean_phone(payload.phone),
        "status": payload.status,
    }


async def list_contacts(
    session: AsyncSession,
    *,
    user_id: UUID,
    q: str = "",
    status: ContactStatus | None = None,
    group_id: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[ContactResponse]:
    rows = await repo.list_contacts(
        session,
        user_id=user_id,
        q=q,
        status=status,
        group_id=_parse_id(group_id, field_name="group_id") if group_id else None,
        limit=max(1, min(limit, 500)),
        offset=max(0, offset),
    )
    return [_to_response(row) for row in rows]


async def get_contact(session: AsyncSession, *, user_id: UUID, contact_id: UUID | str) -> ContactResponse:
    row = await repo.get_contact(
        session,
        user_id=user_id,
        contact_id=_parse_id(contact_id, field_name="contact_id"),
    )
    return _to_response(row)


async def create_contact(
    session: AsyncSession,
    *,
    user_id: UUID,
    payload: ContactCreateInput,
) -> ContactResponse:
    fields = _create_fields(payload)
    if await repo.find_existing_emails(session, user_id=user_id, emails=[fields["email"]]):
        raise ContactConflictError(f"A contact with email '{fields['email']}' already exists.")
    group_ids = await _resolve_group_ids(session, user_id=user_id, group_ids=payload.group_ids)
    row = await repo.create_contact(session, user_id=user_id, fields=fields, group_ids=group_ids)
    return _to_response(row)


async def update_contact(
    session: AsyncSession,
    *,
    user_id: UUID,
    contact_id: UUID | str,
    payload: ContactUpdateInput,
) -> ContactResponse:
    row = await repo.get_contact(
        session,
        user_id=user_id,
        contact_id=_parse_id(contact_id, field_name="contact_id"),
    )
    patch_data = payload.model_dump(exclude_unset=True)
    fields: dict[str, Any] = {}
    if patch_data.get("email") is not None:
        email = str(patch_data["email"]).strip().lower()
        if email != row.email.lower() and await repo.find_existing_emails(
            session,
            user_id=user_id,
            emails=[email],
        ):
            raise ContactConflictError(f"A contact with email '{email}' already exists.")
        fields["email"] = email
    for name in ("first_name", "last_name"):
        if patch_data.get(name) is not None:
            fields[name] = _clean_name(patch_data[name], field_name=name)
    if "phone" in patch_data:
        fields["phone"] = _clean_phone(patch_data["phone"])
    if patch_data.get("status") is not None:
        fields["status"] = patch_data["status"]

    group_ids: list[UUID] | None = None
    if patch_data.get("group_ids") is not None:
        group_ids = await _resolve_group_ids(session, user_id=user_id, group_ids=patch_data["group_ids"])

    if not fields and group_ids is None:
        return _to_response(row)
    row = await repo.update_contact(session, row=row, fields=fields, group_ids=group_ids)
    return _to_response(row)


async def delete_contact(session: AsyncSession, *, user_id: UUID, contact_id: UUID | str) -> None:
    row = await repo.get_contact(
        session,
        user_id=user_id,
        contact_id=_parse_id(contact_id, field_name="contact_id"),
    )
    await repo.delete_contact(session, row=row)


async def import_contacts(
    session: AsyncSession,
    *,
    user_id: UUID,
    contacts: list[ContactCreateInput],
) -> ContactImportResult:
    """Insert a validated batch; rows whose email already exists are skipped."""
    errors: list[str] = []
    existing = await repo.find_existing_emails(
        session,
        user_id=user_id,
        emails=[item.email for item in contacts],
    )
    known_groups = await groups_repo.find_owned_group_ids(
        session,
        user_id=user_id,
        group_ids=[
            group_id
            for item in contacts
            for group_id in _safe_ids(item.group_ids)
        ],
    )

    items: list[tuple[dict[str, Any], list[UUID]]] = []
    seen: set[str] = set()
    skipped = 0
    for index, item in enumerate(contacts, start=1):
        try:
            fields = _create_fields(item)
        except ContactValidationError as exc:
            errors.append(f"row {index}: {exc}")
            skipped += 1
            continue
        email = fields["email"]
        if email in existing or email in seen:
            skipped += 1
            continue
        seen.add(email)
        group_ids = [group_id for group_id in _safe_ids(item.group_ids) if group_id in known_groups]
        if len(group_ids) != len(item.group_ids):
            errors.append(f"row {index}: unknown group ids were ignored")
        items.append((fields, group_ids))

    created = await repo.create_contacts(session, user_id=user_id, items=items) if items else 0
    logger.info("Imported %d contacts for user %s (%d skipped).", created, user_id, skipped)
    return ContactImportResult(created=created, skipped=skipped, errors=errors)


def _safe_ids(values: list[str]) -> list[UUID]:
    parsed: list[UUID] = []
    for value in values:
        try:
            parsed.append(to_uuid(value))
        except ValueError:
            continue
    return parsed
