from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from server.features.contacts import repo as contacts_repo
from server.features.shared.ids import to_uuid

from . import repo
from .errors import UnsubscribeFailedError, UnsubscribeNotFoundError, UnsubscribeValidationError
from .types import UnsubscribeLogResponse, UnsubscribeOutcome

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_link_ids(contact: str | None, campaign: str | None) -> tuple[UUID, UUID]:
    if not contact or not campaign:
        raise UnsubscribeValidationError("Missing required parameters.")
    try:
        return to_uuid(contact), to_uuid(campaign)
    except ValueError as exc:
        raise UnsubscribeValidationError("Invalid unsubscribe link.") from exc


async def _best_effort(session: AsyncSession, step: str, action: Callable[[], Awaitable[Any]]) -> bool:
    try:
        await action()
    except Exception:
        logger.exception("Unsubscribe step '%s' failed; continuing.", step)
        await session.rollback()
        return False
    return True


async def unsubscribe(
    session: AsyncSession,
    *,
    contact_id: UUID,
    campaign_id: UUID,
    clock: Clock = _utcnow,
) -> UnsubscribeOutcome:
    """Opt a contact out from an emailed link.

    Only the status change must succeed. Group removal, the metric stamp and the
    audit row are attempted in order and a failure in one does not stop the rest.
    A contact that is already unsubscribed is reported as such and nothing is written.
    """
    contact = await repo.get_contact(session, contact_id=contact_id)
    if contact is None:
        raise UnsubscribeNotFoundError("Contact not found.")
    campaign = await repo.get_campaign(session, campaign_id=campaign_id)
    if campaign is None or campaign.user_id != contact.user_id:
        raise UnsubscribeNotFoundError("Campaign not found.")

    if contact.status == "unsubscribed":
        logger.info("Contact %s is already unsubscribed.", contact.id)
        return UnsubscribeOutcome(status="already-unsubscribed", email=contact.email)

    now = clock()
    try:
        await repo.mark_unsubscribed(session, row=contact, at=now)
    except Exception as exc:
        await session.rollback()
        raise UnsubscribeFailedError("Failed to update contact status.") from exc

    email = contact.email
    user_id = contact.user_id
    campaign_name = campaign.name
    steps = (
        ("remove_from_groups", lambda: contacts_repo.remove_from_all_groups(session, contact_id=contact_id)),
        ("stamp_metrics", lambda: repo.stamp_metrics(session, contact_id=contact_id, campaign_id=campaign_id, at=now)),
        (
            "audit_log",
            lambda: repo.create_log(
                session,
                user_id=user_id,
                contact_id=contact_id,
                campaign_id=campaign_id,
                email=email,
                at=now,
            ),
        ),
    )
    skipped: list[str] = []
    for name, action in steps:
        if not await _best_effort(session, name, action):
            skipped.append(name)

    logger.info("Contact %s unsubscribed from campaign %s.", contact_id, campaign_id)
    return UnsubscribeOutcome(
        status="unsubscribed",
        email=email,
        campaign_name=campaign_name,
        skipped_steps=tuple(skipped),
    )


async def list_unsubscribe_logs(
    session: AsyncSession,
    *,
    user_id: UUID,
    limit: int = 100,
    offset: int = 0,
) -> list[UnsubscribeLogResponse]:
    rows = await repo.list_logs(session, user_id=user_id, limit=limit, offset=offset)
    return [
        UnsubscribeLogResponse(
            id=str(row.id),
            contact_id=str(row.contact_id) if row.contact_id else None,
            campaign_id=str(row.campaign_id) if row.campaign_id else None,
            email=row.email,
            reason=row.reason,
            unsubscribed_at=row.unsubscribed_at,
        )
        for row in rows
    ]
