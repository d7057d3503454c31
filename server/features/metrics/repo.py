from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from server.db.models import Campaign, Contact, EmailMetric, Group

from .errors import MetricNotFoundError
from .types import MetricCounts


def _counts_query():
    return select(
        func.count(EmailMetric.id),
        func.count(EmailMetric.opened_at),
        func.count(EmailMetric.clicked_at),
        func.count(EmailMetric.bounced_at),
        func.count(EmailMetric.unsubscribed_at),
    )


def _to_counts(row) -> MetricCounts:
    sent, opened, clicked, bounced, unsubscribed = row
    return MetricCounts(
        sent=int(sent or 0),
        opened=int(opened or 0),
        clicked=int(clicked or 0),
        bounced=int(bounced or 0),
        unsubscribed=int(unsubscribed or 0),
    )


async def count_campaign_metrics(session: AsyncSession, *, user_id: UUID, campaign_id: UUID) -> MetricCounts:
    stmt = _counts_query().where(EmailMetric.user_id == user_id, EmailMetric.campaign_id == campaign_id)
    return _to_counts((await session.execute(stmt)).one())


async def count_user_metrics(session: AsyncSession, *, user_id: UUID) -> MetricCounts:
    stmt = _counts_query().where(EmailMetric.user_id == user_id)
    return _to_counts((await session.execute(stmt)).one())


async def count_rows(session: AsyncSession, *, user_id: UUID) -> tuple[int, int, int]:
    campaigns = await session.scalar(select(func.count(Campaign.id)).where(Campaign.user_id == user_id))
    contacts = await session.scalar(select(func.count(Contact.id)).where(Contact.user_id == user_id))
    groups = await session.scalar(select(func.count(Group.id)).where(Group.user_id == user_id))
    return int(campaigns or 0), int(contacts or 0), int(groups or 0)


async def get_metric(session: AsyncSession, *, user_id: UUID, metric_id: UUID) -> EmailMetric:
    stmt = select(EmailMetric).where(EmailMetric.id == metric_id, EmailMetric.user_id == user_id)
    row = (await session.execute(stmt)).scalar_one_or_none()
    if row is None:
        raise MetricNotFoundError(f"Metric '{metric_id}' was not found.")
    return row


async def save_metric(session: AsyncSession, *, row: EmailMetric) -> EmailMetric:
    await session.commit()
    await session.refresh(row)
    return row
