from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from server.db.models import Contact, ContactGroup, Group

from .errors import GroupNotFoundError
from .types import GroupWithCount


def _count_query():
    return (
        select(Group, func.count(ContactGroup.contact_id).label("contact_count"))
        .outerjoin(ContactGroup, ContactGroup.group_id == Group.id)
        .group_by(Group.id)
    )


def _with_count(row: Group, count: int | None) -> GroupWithCount:
    return GroupWithCount(
        id=row.id,
        name=row.name,
        description=row.description,
        contact_count=int(count or 0),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


async def list_groups(session: AsyncSession, *, user_id: UUID) -> list[GroupWithCount]:
    stmt = _count_query().where(Group.user_id == user_id).order_by(Group.created_at.desc(), Group.id.desc())
    return [_with_count(row, count) for row, count in (await session.execute(stmt)).all()]


async def get_group(session: AsyncSession, *, user_id: UUID, group_id: UUID) -> Group:
    stmt = select(Group).where(Group.id == group_id, Group.user_id == user_id)
    row = (await session.execute(stmt)).scalar_one_or_none()
    if row is None:
        raise GroupNotFoundError(f"Group '{group_id}' was not found.")
    return row


async def get_group_with_count(session: AsyncSession, *, user_id: UUID, group_id: UUID) -> GroupWithCount:
    stmt = _count_query().where(Group.id == group_id, Group.user_id == user_id)
    result = (await session.execute(stmt)).first()
    if result is None:
        raise GroupNotFoundError(f"Group '{group_id}' was not found.")
    row, count = result
    return _with_count(row, count)


async def find_owned_group_ids(
    session: AsyncSession,
    *,
    user_id: UUID,
    group_ids: Iterable[UUID],
) -> set[UUID]:
    wanted = list(group_ids)
    if not wanted:
        return set()
    stmt = select(Group.id).where(Group.user_id == user_id, Group.id.in_(wanted))
    return set((await session.execute(stmt)).scalars().all())


async def create_group(
    session: AsyncSession,
    *,
    user_id: UUID,
    name: str,
    description: str | None,
) -> Group:
    row = Group(user_id=user_id, name=name, description=description)
    session.add(row)
    await session.commit()
    await session.refresh(row)
    return row


async def update_group(
    session: AsyncSession,
    *,
    row: Group,
    name: str | None = None,
    description: str | None = None,
    clear_description: bool = False,
) -> Group:
    if name is not None:
        row.name = name
    if clear_description:
        row.description = None
    elif description is not None:
        row.description = description
    await session.commit()
    await session.refresh(row)
    return row


async def delete_group(session: AsyncSession, *, row: Group) -> None:
    await session.delete(row)
    await session.commit()


async def add_member(session: AsyncSession, *, group_id: UUID, contact_id: UUID) -> bool:
    existing = await session.get(ContactGroup, (contact_id, group_id))
    if existing is not None:
        return False
    session.add(ContactGroup(contact_id=contact_id, group_id=group_id))
    await session.commit()
    return True


async def remove_member(session: AsyncSession, *, group_id: UUID, contact_id: UUID) -> bool:
    result = await session.execute(
        delete(ContactGroup).where(
            ContactGroup.group_id == group_id,
            ContactGroup.contact_id == contact_id,
        )
    )
    await session.commit()
    return bool(result.rowcount)


async def contact_is_owned(session: AsyncSession, *, user_id: UUID, contact_id: UUID) -> bool:
    stmt = select(Contact.id).where(Contact.id == contact_id, Contact.user_id == user_id)
    return (await session.execute(stmt)).scalar_one_or_none() is not None
