from __future__ import annotations

from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from server.db.models import Contact, ContactGroup

from .errors import ContactNotFoundError


def _with_groups(stmt):
    return stmt.options(
        selectinload(Contact.group_links).selectinload(ContactGroup.group)
    ).execution_options(populate_existing=True)


async def list_contacts(
    session: AsyncSession,
    *,
    user_id: UUID,
    q: str,
    status: str | None,
    group_id: UUID | None,
    limit: int,
    offset: int,
) -> list[Contact]:
    stmt = _with_groups(select(Contact)).where(Contact.user_id == user_id)
    if status is not None:
        stmt = stmt.where(Contact.status == status)
    if group_id is not None:
        stmt = stmt.join(ContactGroup, ContactGroup.contact_id == Contact.id).where(
            ContactGroup.group_id == group_id
        )

    clean_query = q.strip()
    if clean_query:
        like = f"%{clean_query}%"
        stmt = stmt.where(
            or_(
                Contact.email.ilike(like),
                Contact.first_name.ilike(like),
                Contact.last_name.ilike(like),
            )
        )

    stmt = stmt.order_by(Contact.created_at.desc(), Contact.id.desc()).limit(limit).offset(offset)
    return list((await session.execute(stmt)).scalars().all())


async def get_contact(session: AsyncSession, *, user_id: UUID, contact_id: UUID) -> Contact:
    stmt = _with_groups(select(Contact)).where(Contact.id == contact_id, Contact.user_id == user_id)
    row = (await session.execute(stmt)).scalar_one_or_none()
    if row is None:
        raise ContactNotFoundError(f"Contact '{contact_id}' was not found.")
    return row


async def find_existing_emails(
    session: AsyncSession,
    *,
    user_id: UUID,
    emails: Iterable[str],
) -> set[str]:
    lowered = sorted({email.lower() for email in emails})
    if not lowered:
        return set()
    stmt = select(func.lower(Contact.email)).where(
        Contact.user_id == user_id,
        func.lower(Contact.email).in_(lowered),
    )
    return set((await session.execute(stmt)).scalars().all())


def _link_groups(row: Contact, group_ids: Iterable[UUID]) -> None:
    wanted = list(dict.fromkeys(group_ids))
    kept = [link for link in row.group_links if link.group_id in wanted]
    present = {link.group_id for link in kept}
    row.group_links = kept + [ContactGroup(group_id=group_id) for group_id in wanted if group_id not in present]


async def create_contact(
    session: AsyncSession,
    *,
    user_id: UUID,
    fields: dict[str, Any],
    group_ids: list[UUID],
) -> Contact:
    row = Contact(user_id=user_id, **fields)
    _link_groups(row, group_ids)
    session.add(row)
    await session.commit()
    return await get_contact(session, user_id=user_id, contact_id=row.id)


async def create_contacts(
    session: AsyncSession,
    *,
    user_id: UUID,
    items: list[tuple[dict[str, Any], list[UUID]]],
) -> int:
    for fields, group_ids in items:
        row = Contact(user_id=user_id, **fields)
        _link_groups(row, group_ids)
        session.add(row)
    await session.commit()
    return len(items)


async def update_contact(
    session: AsyncSession,
    *,
    row: Contact,
    fields: dict[str, Any],
    group_ids: list[UUID] | None,
) -> Contact:
    for key, value in fields.items():
        setattr(row, key, value)
    if group_ids is not None:
        _link_groups(row, group_ids)
    await session.commit()
    return await get_contact(session, user_id=row.user_id, contact_id=row.id)


async def remove_from_all_groups(session: AsyncSession, *, contact_id: UUID) -> int:
    result = await session.execute(delete(ContactGroup).where(ContactGroup.contact_id == contact_id))
    await session.commit()
    return int(result.rowcount or 0)


async def delete_contact(session: AsyncSession, *, row: Contact) -> None:
    await session.delete(row)
    await session.commit()
