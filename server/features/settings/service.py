from __future__ import annotations

import logging
import re
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from server.core.config import get_settings
from server.db.models import ConfigEntry
from server.features.shared.ids import to_uuid
from server.features.shared.text_sanitize import (
    log_sanitization_stats,
    sanitize_optional_text,
    sanitize_text,
)

from . import repo
from .errors import ConfigEntryValidationError
from .types import (
    FROM_EMAIL_KEY,
    FROM_NAME_KEY,
    ConfigEntryCreate,
    ConfigEntryPatch,
    ConfigEntryResponse,
    SenderIdentityResolved,
    SenderIdentityResponse,
)

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]+$")


def default_sender_identity_from_env() -> SenderIdentityResolved:
    settings = get_settings()
    return SenderIdentityResolved(
        from_email=settings.email_from_address,
        from_name=settings.email_from_name,
        source="environment_defaults",
    )


async def resolve_sender_identity(session: AsyncSession, *, user_id: UUID) -> SenderIdentityResolved:
    """Sender identity for outgoing campaigns; tenant config rows win over the environment."""
    defaults = default_sender_identity_from_env()
    values = await repo.get_values(session, user_id=user_id, keys=(FROM_EMAIL_KEY, FROM_NAME_KEY))
    from_email = (values.get(FROM_EMAIL_KEY) or "").strip()
    from_name = (values.get(FROM_NAME_KEY) or "").strip()
    if not from_email and not from_name:
        return defaults
    return SenderIdentityResolved(
        from_email=from_email or defaults.from_email,
        from_name=from_name or defaults.from_name,
        source="database",
    )


def to_sender_identity_response(identity: SenderIdentityResolved) -> SenderIdentityResponse:
    return SenderIdentityResponse(
        from_email=identity.from_email,
        from_name=identity.from_name,
        source=identity.source,
    )


def _to_response(row: ConfigEntry) -> ConfigEntryResponse:
    return ConfigEntryResponse(
        id=str(row.id),
        key=row.key,
        value=row.value,
        description=row.description,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _normalize_key(value: str) -> str:
    key, stats = sanitize_text(value, strip=True)
    log_sanitization_stats(logger, location="settings.normalize_key", stats=stats)
    if not key:
        raise ConfigEntryValidationError("key cannot be empty.")
    if not _KEY_PATTERN.match(key):
        raise ConfigEntryValidationError("key may only contain letters, digits, '_', '.' and '-'.")
    return key


def _normalize_value(value: str) -> str:
    normalized, stats = sanitize_text(value, strip=True)
    log_sanitization_stats(logger, location="settings.normalize_value", stats=stats)
    if not normalized:
        raise ConfigEntryValidationError("value cannot be empty.")
    return normalized


def _normalize_description(value: str | None) -> str | None:
    normalized, stats = sanitize_optional_text(value, strip=True)
    log_sanitization_stats(logger, location="settings.normalize_description", stats=stats)
    return normalized


async def list_config_entries(session: AsyncSession, *, user_id: UUID) -> list[ConfigEntryResponse]:
    rows = await repo.list_entries(session, user_id=user_id)
    return [_to_response(row) for row in rows]


async def create_config_entry(
    session: AsyncSession,
    *,
    user_id: UUID,
    payload: ConfigEntryCreate,
) -> ConfigEntryResponse:
    row = await repo.create_entry(
        session,
        user_id=user_id,
        key=_normalize_key(payload.key),
        value=_normalize_value(payload.value),
        description=_normalize_description(payload.description),
    )
    logger.info("Created config key %s for user %s.", row.key, user_id)
    return _to_response(row)


async def update_config_entry(
    session: AsyncSession,
    *,
    user_id: UUID,
    entry_id: UUID | str,
    payload: ConfigEntryPatch,
) -> ConfigEntryResponse:
    try:
        entry_uuid = to_uuid(entry_id)
    except ValueError as exc:
        raise ConfigEntryValidationError("Invalid entry_id.") from exc
    row = await repo.get_entry(session, user_id=user_id, entry_id=entry_uuid)
    patch_data = payload.model_dump(exclude_unset=True)
    if not patch_data:
        return _to_response(row)

    value = _normalize_value(patch_data["value"]) if patch_data.get("value") is not None else None
    description = None
    clear_description = False
    if "description" in patch_data:
        description = _normalize_description(patch_data["description"])
        clear_description = description is None
    row = await repo.update_entry(
        session,
        row=row,
        value=value,
        description=description,
        clear_description=clear_description,
    )
    return _to_response(row)


async def delete_config_entry(session: AsyncSession, *, user_id: UUID, entry_id: UUID | str) -> None:
    try:
        entry_uuid = to_uuid(entry_id)
    except ValueError as exc:
        raise ConfigEntryValidationError("Invalid entry_id.") from exc
    row = await repo.get_entry(session, user_id=user_id, entry_id=entry_uuid)
    await repo.delete_entry(session, row=row)
