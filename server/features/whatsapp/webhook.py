from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from server.db.models import WhatsAppMessage
from server.features.media.storage import LocalObjectStorage, extension_for
from server.features.realtime import ChangeFeed, RowEvent

from . import repo
from .client import WhatsAppCloudClient
from .errors import WhatsAppDomainError
from .events import MESSAGES_TABLE, message_row
from .types import INBOUND_STATUS, MEDIA_TYPES

logger = logging.getLogger(__name__)

WHATSAPP_OBJECT = "whatsapp_business_account"

_STATUS_RANK = {"pending": 0, "sent": 1, "delivered": 2, "read": 3}


@dataclass
class WebhookResult:
    contacts: int = 0
    messages: int = 0
    duplicates: int = 0
    statuses: int = 0
    failures: int = 0


def next_status(current: str, incoming: str) -> str | None:
    """Status to store after a delivery receipt, or ``None`` to leave the row alone.

    Receipts may arrive out of order; ``sent < delivered < read`` never moves
    backwards. ``failed`` applies from any state and is final.
    """
    if incoming == current or current in {"failed", INBOUND_STATUS}:
        return None
    if incoming == "failed":
        return "failed"
    if incoming not in _STATUS_RANK:
        return None
    if _STATUS_RANK[incoming] <= _STATUS_RANK.get(current, -1):
        return None
    return incoming


def provider_timestamp(value: Any) -> datetime:
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return datetime.now(timezone.utc)


async def _publish(feed: ChangeFeed, kind: str, row: WhatsAppMessage) -> None:
    await feed.publish(RowEvent(table=MESSAGES_TABLE, kind=kind, row=message_row(row)))


async def _store_inbound_media(
    message: dict[str, Any],
    *,
    client: WhatsAppCloudClient,
    storage: LocalObjectStorage,
) -> str | None:
    message_type = message.get("type")
    section = message.get(message_type) if isinstance(message_type, str) else None
    if message_type not in MEDIA_TYPES or not isinstance(section, dict) or not section.get("id"):
        return None
    media_id = str(section["id"])
    try:
        url, mime_type = await client.get_media_url(media_id)
        data = await client.download_media(url)
        extension = extension_for(mime_type or section.get("mime_type"))
        return await storage.upload(f"whatsapp/{media_id}{extension}", data)
    except WhatsAppDomainError:
        logger.warning("Could not fetch media %s for message %s.", media_id, message.get("id"), exc_info=True)
    except Exception:
        logger.exception("Could not store media %s for message %s.", media_id, message.get("id"))
    return None


async def _handle_message(
    session: AsyncSession,
    message: dict[str, Any],
    *,
    client: WhatsAppCloudClient,
    storage: LocalObjectStorage,
    feed: ChangeFeed,
    business_number: str,
    result: WebhookResult,
) -> None:
    provider_id = message.get("id")
    sender = message.get("from")
    if not provider_id or not sender:
        logger.warning("Skipping webhook message without id or sender.")
        result.failures += 1
        return
    if await repo.get_message_by_provider_id(session, message_id=str(provider_id)) is not None:
        result.duplicates += 1
        return

    media_url = await _store_inbound_media(message, client=client, storage=storage)
    row = await repo.create_message(
        session,
        message_id=str(provider_id),
        from_number=str(sender),
        to_number=business_number,
        message_type=str(message.get("type") or "unsupported"),
        content=message,
        media_url=media_url,
        status=INBOUND_STATUS,
        created_at=provider_timestamp(message.get("timestamp")),
    )
    result.messages += 1
    await _publish(feed, "INSERT", row)


async def _handle_status(
    session: AsyncSession,
    status: dict[str, Any],
    *,
    feed: ChangeFeed,
    result: WebhookResult,
) -> None:
    provider_id = status.get("id")
    incoming = status.get("status")
    if not provider_id or not incoming:
        return
    row = await repo.get_message_by_provider_id(session, message_id=str(provider_id))
    if row is None:
        logger.debug("Status %s for unknown message %s ignored.", incoming, provider_id)
        return
    new_status = next_status(row.status, str(incoming))
    if new_status is None:
        return
    row = await repo.update_message(session, row=row, status=new_status)
    result.statuses += 1
    await _publish(feed, "UPDATE", row)


async def process_webhook(
    session: AsyncSession,
    payload: dict[str, Any],
    *,
    client: WhatsAppCloudClient,
    storage: LocalObjectStorage,
    feed: ChangeFeed,
    business_number: str,
) -> WebhookResult:
    """Apply one webhook delivery. Failures are logged per item, never raised."""
    result = WebhookResult()
    if payload.get("object") != WHATSAPP_OBJECT:
        logger.info("Ignoring webhook for object %r.", payload.get("object"))
        return result

    for entry in payload.get("entry") or []:
        for change in entry.get("changes") or []:
            if change.get("field") != "messages":
                continue
            value = change.get("value") or {}

            for contact in value.get("contacts") or []:
                wa_id = contact.get("wa_id")
                if not wa_id:
                    continue
                try:
                    await repo.upsert_contact(
                        session,
                        wa_id=str(wa_id),
                        profile_name=(contact.get("profile") or {}).get("name"),
                    )
                    result.contacts += 1
                except Exception:
                    await session.rollback()
                    result.failures += 1
                    logger.exception("Failed to upsert WhatsApp contact %s.", wa_id)

            for message in value.get("messages") or []:
                try:
                    await _handle_message(
                        session,
                        message,
                        client=client,
                        storage=storage,
                        feed=feed,
                        business_number=business_number,
                        result=result,
                    )
                except Exception:
                    await session.rollback()
                    result.failures += 1
                    logger.exception("Failed to store WhatsApp message %s.", message.get("id"))

            for status in value.get("statuses") or []:
                try:
                    await _handle_status(session, status, feed=feed, result=result)
                except Exception:
                    await session.rollback()
                    result.failures += 1
                    logger.exception("Failed to apply WhatsApp status for %s.", status.get("id"))

    logger.info(
        "Processed webhook: %d messages, %d duplicates, %d statuses, %d failures.",
        result.messages,
        result.duplicates,
        result.statuses,
        result.failures,
    )
    return result
