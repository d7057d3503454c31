from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from server.db.models import Campaign, CampaignGroup, Contact, ContactGroup, EmailMetric, Group

from .errors import CampaignNotFoundError
from .types import Recipient


async def list_campaigns(
    session: AsyncSession,
    *,
    user_id: UUID,
    q: str,
    status: str | None,
    limit: int,
    offset: int,
) -> list[Campaign]:
    stmt = select(Campaign).where(Campaign.user_id == user_id)
    if status is not None:
        stmt = stmt.where(Campaign.status == status)
    clean_query = q.strip()
    if clean_query:
        like = f"%{clean_query}%"
        stmt = stmt.where(or_(Campaign.name.ilike(like), Campaign.subject.ilike(like)))
    stmt = stmt.order_by(Campaign.created_at.desc(), Campaign.id.desc()).limit(limit).offset(offset)
    return list((await session.execute(stmt)).scalars().all())


async def get_campaign(session: AsyncSession, *, user_id: UUID, campaign_id: UUID) -> Campaign:
    stmt = select(Campaign).where(Campaign.id == campaign_id, Campaign.user_id == user_id)
    row = (await session.execute(stmt)).scalar_one_or_none()
    if row is None:
        raise CampaignNotFoundError(f"Campaign '{campaign_id}' was not found.")
    return row


async def list_campaign_groups(
    session: AsyncSession,
    *,
    campaign_ids: Iterable[UUID],
) -> dict[UUID, list[tuple[UUID, str]]]:
    ids = list(campaign_ids)
    grouped: dict[UUID, list[tuple[UUID, str]]] = {campaign_id: [] for campaign_id in ids}
    if not ids:
        return grouped
    stmt = (
        select(CampaignGroup.campaign_id, Group.id, Group.name)
        .join(Group, Group.id == CampaignGroup.group_id)
        .where(CampaignGroup.campaign_id.in_(ids))
        .order_by(Group.name.asc())
    )
    for campaign_id, group_id, name in (await session.execute(stmt)).all():
        grouped.setdefault(campaign_id, []).append((group_id, name))
    return grouped


async def _replace_groups(session: AsyncSession, *, campaign_id: UUID, group_ids: list[UUID]) -> None:
    existing = set(
        (
            await session.execute(
                select(CampaignGroup.group_id).where(CampaignGroup.campaign_id == campaign_id)
            )
        ).scalars().all()
    )
    wanted = list(dict.fromkeys(group_ids))
    for group_id in existing - set(wanted):
        link = await session.get(CampaignGroup, (campaign_id, group_id))
        if link is not None:
            await session.delete(link)
    for group_id in wanted:
        if group_id not in existing:
            session.add(CampaignGroup(campaign_id=campaign_id, group_id=group_id))


async def create_campaign(
    session: AsyncSession,
    *,
    user_id: UUID,
    fields: dict[str, Any],
    group_ids: list[UUID],
) -> Campaign:
    row = Campaign(user_id=user_id, **fields)
    session.add(row)
    await session.flush()
    await _replace_groups(session, campaign_id=row.id, group_ids=group_ids)
    await session.commit()
    await session.refresh(row)
    return row


async def update_campaign(
    session: AsyncSession,
    *,
    row: Campaign,
    fields: dict[str, Any],
    group_ids: list[UUID] | None,
) -> Campaign:
    for key, value in fields.items():
        setattr(row, key, value)
    if group_ids is not None:
        await _replace_groups(session, campaign_id=row.id, group_ids=group_ids)
    await session.commit()
    await session.refresh(row)
    return row


async def delete_campaign(session: AsyncSession, *, row: Campaign) -> None:
    await session.delete(row)
    await session.commit()


async def list_active_recipients(session: AsyncSession, *, campaign_id: UUID) -> list[Recipient]:
    """Active contacts of every group linked to the campaign, once per contact."""
    stmt = (
        select(Contact.id, Contact.email)
        .join(ContactGroup, ContactGroup.contact_id == Contact.id)
        .join(CampaignGroup, CampaignGroup.group_id == ContactGroup.group_id)
        .where(CampaignGroup.campaign_id == campaign_id, Contact.status == "active")
        .distinct()
        .order_by(Contact.email.asc(), Contact.id.asc())
    )
    return [Recipient(contact_id=contact_id, email=email) for contact_id, email in (await session.execute(stmt)).all()]


async def record_dispatch(
    session: AsyncSession,
    *,
    row: Campaign,
    user_id: UUID,
    contact_ids: list[UUID],
    sent_at: datetime,
) -> Campaign:
    for contact_id in contact_ids:
        session.add(
            EmailMetric(
                user_id=user_id,
                campaign_id=row.id,
                contact_id=contact_id,
                sent_at=sent_at,
            )
        )
    row.status = "sent"
    row.sent_at = sent_at
    await session.commit()
    await session.refresh(row)
    return row
