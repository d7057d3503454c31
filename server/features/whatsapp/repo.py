from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from server.db.models import WhatsAppContact, WhatsAppMessage

from .types import INBOUND_STATUS


def _involves(contact_id: str):
    return or_(
        WhatsAppMessage.from_number == contact_id,
        WhatsAppMessage.to_number == contact_id,
    )


async def list_contact_ids(session: AsyncSession, *, business_number: str) -> list[str]:
    """Every counterpart the business has a contact row or a message with."""
    contact_ids = list((await session.execute(select(WhatsAppContact.wa_id))).scalars().all())
    senders = await session.execute(
        select(WhatsAppMessage.from_number)
        .where(WhatsAppMessage.from_number != business_number)
        .distinct()
    )
    recipients = await session.execute(
        select(WhatsAppMessage.to_number)
        .where(WhatsAppMessage.from_number == business_number)
        .distinct()
    )
    contact_ids.extend(senders.scalars().all())
    contact_ids.extend(recipients.scalars().all())
    return list(dict.fromkeys(item for item in contact_ids if item and item != business_number))


async def list_contacts(session: AsyncSession, *, wa_ids: Sequence[str]) -> list[WhatsAppContact]:
    if not wa_ids:
        return []
    stmt = select(WhatsAppContact).where(WhatsAppContact.wa_id.in_(list(wa_ids)))
    return list((await session.execute(stmt)).scalars().all())


async def upsert_contact(
    session: AsyncSession,
    *,
    wa_id: str,
    profile_name: str | None,
) -> WhatsAppContact:
    row = (
        await session.execute(select(WhatsAppContact).where(WhatsAppContact.wa_id == wa_id))
    ).scalar_one_or_none()
    if row is None:
        row = WhatsAppContact(wa_id=wa_id, profile_name=profile_name)
        session.add(row)
    elif profile_name and row.profile_name != profile_name:
        row.profile_name = profile_name
    await session.commit()
    await session.refresh(row)
    return row


async def get_last_message(session: AsyncSession, *, contact_id: str) -> WhatsAppMessage | None:
    stmt = (
        select(WhatsAppMessage)
        .where(_involves(contact_id))
        .order_by(WhatsAppMessage.created_at.desc(), WhatsAppMessage.id.desc())
        .limit(1)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def count_inbound_since(
    session: AsyncSession,
    *,
    contact_id: str,
    since: datetime | None,
    until: datetime,
) -> int:
    conditions = [
        WhatsAppMessage.from_number == contact_id,
        WhatsAppMessage.status == INBOUND_STATUS,
    ]
    if since is not None:
        conditions.append(WhatsAppMessage.created_at > since)
    conditions.append(WhatsAppMessage.created_at <= until)
    stmt = select(func.count()).select_from(WhatsAppMessage).where(and_(*conditions))
    return int((await session.execute(stmt)).scalar_one() or 0)


async def list_thread(
    session: AsyncSession,
    *,
    contact_id: str,
    limit: int,
) -> list[WhatsAppMessage]:
    stmt = (
        select(WhatsAppMessage)
        .where(_involves(contact_id))
        .order_by(WhatsAppMessage.created_at.desc(), WhatsAppMessage.id.desc())
        .limit(limit)
    )
    rows = list((await session.execute(stmt)).scalars().all())
    rows.reverse()
    return rows


async def get_message_by_provider_id(
    session: AsyncSession,
    *,
    message_id: str,
) -> WhatsAppMessage | None:
    stmt = select(WhatsAppMessage).where(WhatsAppMessage.message_id == message_id)
    return (await session.execute(stmt)).scalar_one_or_none()


async def create_message(
    session: AsyncSession,
    *,
    message_id: str | None,
    from_number: str,
    to_number: str,
    message_type: str,
    content: dict[str, Any],
    status: str,
    media_url: str | None = None,
    created_at: datetime | None = None,
) -> WhatsAppMessage:
    row = WhatsAppMessage(
        message_id=message_id,
        from_number=from_number,
        to_number=to_number,
        type=message_type,
        content=content,
        media_url=media_url,
        status=status,
    )
    if created_at is not None:
        row.created_at = created_at
    session.add(row)
    await session.commit()
    await session.refresh(row)
    return row


async def update_message(
    session: AsyncSession,
    *,
    row: WhatsAppMessage,
    status: str | None = None,
    message_id: str | None = None,
) -> WhatsAppMessage:
    if status is not None:
        row.status = status
    if message_id is not None:
        row.message_id = message_id
    await session.commit()
    await session.refresh(row)
    return row
