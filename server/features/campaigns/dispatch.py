from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from server.features.email.templates import build_unsubscribe_link, render_campaign_email
from server.features.email.transport import EmailTransport
from server.features.email.types import OutgoingEmail, SenderIdentity
from server.features.settings.service import resolve_sender_identity
from server.features.shared.ids import to_uuid

from . import repo
from .errors import CampaignValidationError
from .types import CampaignSendResult

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def send_campaign(
    session: AsyncSession,
    *,
    user_id: UUID,
    campaign_id: UUID | str,
    transport: EmailTransport,
    app_base_url: str,
    clock: Clock = _utcnow,
) -> CampaignSendResult:
    """Send a campaign to the active members of its groups and record who got it.

    Each recipient gets a personal unsubscribe link. A metric row is written only for
    addresses the transport accepted; the campaign is marked ``sent`` either way.
    """
    try:
        parsed_id = to_uuid(campaign_id)
    except ValueError as exc:
        raise CampaignValidationError("Invalid campaign_id.") from exc

    row = await repo.get_campaign(session, user_id=user_id, campaign_id=parsed_id)
    recipients = await repo.list_active_recipients(session, campaign_id=row.id)
    if not recipients:
        raise CampaignValidationError("No active contacts found in campaign groups.")

    identity = await resolve_sender_identity(session, user_id=user_id)
    sender = SenderIdentity(from_email=identity.from_email, from_name=identity.from_name)
    emails = [
        OutgoingEmail(
            to=recipient.email,
            subject=row.subject,
            html_body=render_campaign_email(
                row.content,
                subject=row.subject,
                unsubscribe_link=build_unsubscribe_link(
                    app_base_url,
                    contact_id=str(recipient.contact_id),
                    campaign_id=str(row.id),
                ),
                sender_name=sender.from_name,
            ),
        )
        for recipient in recipients
    ]

    logger.info(
        "Sending campaign %s to %d recipients as %s (%s).",
        row.id,
        len(emails),
        sender.formatted,
        identity.source,
    )
    result = await transport.send_bulk(emails, sender=sender)

    delivered = set(result.sent_to)
    contact_ids = [recipient.contact_id for recipient in recipients if recipient.email in delivered]
    await repo.record_dispatch(
        session,
        row=row,
        user_id=user_id,
        contact_ids=contact_ids,
        sent_at=clock(),
    )
    if result.failed:
        logger.warning("Campaign %s: %d of %d sends failed.", row.id, result.failed, len(emails))
    return CampaignSendResult(
        total_sent=result.success,
        total_failed=result.failed,
        errors=list(result.errors),
    )
