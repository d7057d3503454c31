from __future__ import annotations

from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from server.db.models import ConfigEntry

from .errors import ConfigEntryConflictError, ConfigEntryNotFoundError


async def list_entries(session: AsyncSession, *, user_id: UUID) -> list[ConfigEntry]:
    stmt = select(ConfigEntry).where(ConfigEntry.user_id == user_id).order_by(ConfigEntry.key.asc())
    return list((await session.execute(stmt)).scalars().all())


async def get_values(
    session: AsyncSession,
    *,
    user_id: UUID,
    keys: Sequence[str],
) -> dict[str, str]:
    stmt = select(ConfigEntry.key, ConfigEntry.value).where(
        ConfigEntry.user_id == user_id,
        ConfigEntry.key.in_(list(keys)),
    )
    return {key: value for key, value in (await session.execute(stmt)).all()}


async def get_entry(session: AsyncSession, *, user_id: UUID, entry_id: UUID) -> ConfigEntry:
    stmt = select(ConfigEntry).where(ConfigEntry.id == entry_id, ConfigEntry.user_id == user_id)
    row = (await session.execute(stmt)).scalar_one_or_none()
    if row is None:
        raise ConfigEntryNotFoundError(f"Config entry '{entry_id}' was not found.")
    return row


async def create_entry(
    session: AsyncSession,
    *,
    user_id: UUID,
    key: str,
    value: str,
    description: str | None,
) -> ConfigEntry:
    row = ConfigEntry(user_id=user_id, key=key, value=value, description=description)
    session.add(row)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConfigEntryConflictError(f"Config key '{key}' already exists.") from exc
    await session.refresh(row)
    return row


async def update_entry(
    session: AsyncSession,
    *,
    row: ConfigEntry,
    value: str | None = None,
    description: str | None = None,
    clear_description: bool = False,
) -> ConfigEntry:
    if value is not None:
        row.value = value
    if clear_description:
        row.description = None
    elif description is not None:
        row.description = description
    await session.commit()
    await session.refresh(row)
    return row


async def delete_entry(session: AsyncSession, *, row: ConfigEntry) -> None:
    await session.delete(row)
    await session.commit()
