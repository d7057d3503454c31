from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from server.db.models import Campaign, Contact, EmailMetric, UnsubscribeLog

from .types import UNSUBSCRIBE_REASON


async def get_contact(session: AsyncSession, *, contact_id: UUID) -> Contact | None:
    return (await session.execute(select(Contact).where(Contact.id == contact_id))).scalar_one_or_none()


async def get_campaign(session: AsyncSession, *, campaign_id: UUID) -> Campaign | None:
    return (await session.execute(select(Campaign).where(Campaign.id == campaign_id))).scalar_one_or_none()


async def mark_unsubscribed(session: AsyncSession, *, row: Contact, at: datetime) -> None:
    row.status = "unsubscribed"
    row.updated_at = at
    await session.commit()


async def stamp_metrics(session: AsyncSession, *, contact_id: UUID, campaign_id: UUID, at: datetime) -> int:
    result = await session.execute(
        update(EmailMetric)
        .where(EmailMetric.contact_id == contact_id, EmailMetric.campaign_id == campaign_id)
        .values(unsubscribed_at=at)
    )
    await session.commit()
    return int(result.rowcount or 0)


async def create_log(
    session: AsyncSession,
    *,
    user_id: UUID,
    contact_id: UUID,
    campaign_id: UUID,
    email: str,
    at: datetime,
    reason: str = UNSUBSCRIBE_REASON,
) -> UnsubscribeLog:
    row = UnsubscribeLog(
        user_id=user_id,
        contact_id=contact_id,
        campaign_id=campaign_id,
        email=email,
        reason=reason,
        unsubscribed_at=at,
    )
    session.add(row)
    await session.commit()
    return row


async def list_logs(session: AsyncSession, *, user_id: UUID, limit: int, offset: int) -> list[UnsubscribeLog]:
    stmt = (
        select(UnsubscribeLog)
        .where(UnsubscribeLog.user_id == user_id)
        .order_by(UnsubscribeLog.unsubscribed_at.desc(), UnsubscribeLog.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list((await session.execute(stmt)).scalars().all())
