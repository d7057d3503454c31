from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from server.core.config import Settings
from server.db.models import WhatsAppMessage
from server.features.media.storage import (
    LocalObjectStorage,
    extension_for,
    normalize_object_path,
    storage_root,
)
from server.features.realtime import ChangeFeed, RowEvent

from . import repo
from .client import WhatsAppCloudClient, build_media_message, build_text_message
from .errors import InboxSyncError, MessageParseError, WhatsAppApiError, WhatsAppValidationError
from .events import MESSAGES_TABLE, message_row, parse_message_row
from .inbox import (
    DatabaseConversationSource,
    InboxReconciler,
    InboxRegistry,
    InboxSession,
    InboxSnapshot,
    JsonFileKeyValueStore,
    LastSeenTracker,
    device_store_path,
)
from .types import InboxMessage, MediaType, SendMediaLinkInput, SendMessageInput, SentMessageResponse

logger = logging.getLogger(__name__)

DEFAULT_THREAD_LIMIT = 200
_CONTACT_ID_PATTERN = re.compile(r"^\d{5,20}$")


def normalize_contact_id(value: str) -> str:
    cleaned = value.strip().lstrip("+")
    if not _CONTACT_ID_PATTERN.match(cleaned):
        raise WhatsAppValidationError("contact_id must be a phone number in international format.")
    return cleaned


def media_type_for(content_type: str) -> MediaType:
    base = content_type.split("/", 1)[0].lower()
    if base in {"image", "audio", "video"}:
        return base  # type: ignore[return-value]
    return "document"


async def _publish(feed: ChangeFeed, kind: str, row: WhatsAppMessage) -> None:
    await feed.publish(RowEvent(table=MESSAGES_TABLE, kind=kind, row=message_row(row)))


def _parse_rows(rows: list[WhatsAppMessage], *, business_number: str) -> list[InboxMessage]:
    messages: list[InboxMessage] = []
    for row in rows:
        try:
            messages.append(parse_message_row(message_row(row), business_number=business_number))
        except MessageParseError:
            logger.warning("Skipping unparseable WhatsApp message row %s.", row.id, exc_info=True)
    return messages


async def list_thread(
    session: AsyncSession,
    *,
    contact_id: str,
    business_number: str,
    limit: int = DEFAULT_THREAD_LIMIT,
) -> list[InboxMessage]:
    normalized = normalize_contact_id(contact_id)
    rows = await repo.list_thread(session, contact_id=normalized, limit=max(1, min(limit, 1000)))
    return _parse_rows(rows, business_number=business_number)


def build_inbox_session(
    *,
    device_id: str,
    feed: ChangeFeed,
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> InboxSession:
    business_number = settings.business_number
    tracker = LastSeenTracker(
        JsonFileKeyValueStore(device_store_path(storage_root(settings.storage_dir), device_id))
    )
    reconciler = InboxReconciler(
        DatabaseConversationSource(session_factory, business_number=business_number),
        tracker,
    )

    async def _load_thread(contact_id: str) -> list[InboxMessage]:
        async with session_factory() as session:
            return await list_thread(session, contact_id=contact_id, business_number=business_number)

    return InboxSession(
        device_id=device_id,
        feed=feed,
        reconciler=reconciler,
        load_thread=_load_thread,
        business_number=business_number,
    )


async def start_inbox_session(
    registry: InboxRegistry,
    *,
    device_id: str,
    feed: ChangeFeed,
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> InboxSession:
    inbox = build_inbox_session(
        device_id=device_id,
        feed=feed,
        session_factory=session_factory,
        settings=settings,
    )
    try:
        async with session_factory() as session:
            contact_ids = await repo.list_contact_ids(session, business_number=settings.business_number)
        await inbox.start(contact_ids)
    except InboxSyncError:
        await inbox.close()
        raise
    except Exception as exc:
        await inbox.close()
        raise InboxSyncError("Failed to load conversations.") from exc

    previous = registry.register(inbox)
    if previous is not None:
        await previous.close()
    return inbox


async def get_inbox_snapshot(
    registry: InboxRegistry,
    *,
    device_id: str,
    feed: ChangeFeed,
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> InboxSnapshot:
    live = registry.get(device_id)
    if live is not None:
        return live.reconciler.store.snapshot()

    # No stream for this device: reconcile once without keeping subscriptions.
    inbox = build_inbox_session(
        device_id=device_id,
        feed=feed,
        session_factory=session_factory,
        settings=settings,
    )
    try:
        async with session_factory() as session:
            contact_ids = await repo.list_contact_ids(session, business_number=settings.business_number)
        await inbox.reconciler.initialize(contact_ids)
        return inbox.reconciler.store.snapshot()
    finally:
        await inbox.close()


async def open_conversation(
    registry: InboxRegistry,
    *,
    device_id: str,
    contact_id: str,
    feed: ChangeFeed,
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> list[InboxMessage]:
    normalized = normalize_contact_id(contact_id)
    live = registry.get(device_id)
    if live is not None:
        return await live.open_conversation(normalized)

    inbox = build_inbox_session(
        device_id=device_id,
        feed=feed,
        session_factory=session_factory,
        settings=settings,
    )
    try:
        await inbox.reconciler.initialize([normalized])
        return await inbox.open_conversation(normalized)
    finally:
        await inbox.close()


async def close_conversation(registry: InboxRegistry, *, device_id: str) -> bool:
    """Clear the open conversation of a device's live inbox; False when it has none."""
    live = registry.get(device_id)
    if live is None:
        return False
    await live.close_conversation()
    return True


async def _send(
    session: AsyncSession,
    *,
    contact_id: str,
    payload: dict[str, Any],
    media_url: str | None,
    client: WhatsAppCloudClient,
    feed: ChangeFeed,
    business_number: str,
) -> SentMessageResponse:
    row = await repo.create_message(
        session,
        message_id=None,
        from_number=business_number,
        to_number=contact_id,
        message_type=str(payload["type"]),
        content=payload,
        media_url=media_url,
        status="pending",
    )
    await _publish(feed, "INSERT", row)

    try:
        provider_id = await client.send_message(payload)
    except WhatsAppApiError:
        row = await repo.update_message(session, row=row, status="failed")
        await _publish(feed, "UPDATE", row)
        raise

    row = await repo.update_message(session, row=row, status="sent", message_id=provider_id)
    await _publish(feed, "UPDATE", row)
    return SentMessageResponse(
        message=parse_message_row(message_row(row), business_number=business_number),
        provider_message_id=provider_id,
    )


async def send_message(
    session: AsyncSession,
    *,
    contact_id: str,
    payload: SendMessageInput,
    client: WhatsAppCloudClient,
    feed: ChangeFeed,
    business_number: str,
) -> SentMessageResponse:
    to = normalize_contact_id(contact_id)
    media_url: str | None = None
    if isinstance(payload, SendMediaLinkInput):
        body = build_media_message(
            to,
            payload.type,
            link=payload.link,
            caption=payload.caption,
            filename=payload.filename,
        )
        media_url = payload.link
    else:
        body = build_text_message(to, payload.body, preview_url=payload.preview_url)
    return await _send(
        session,
        contact_id=to,
        payload=body,
        media_url=media_url,
        client=client,
        feed=feed,
        business_number=business_number,
    )


async def send_media_upload(
    session: AsyncSession,
    *,
    contact_id: str,
    data: bytes,
    filename: str,
    content_type: str,
    caption: str | None,
    client: WhatsAppCloudClient,
    storage: LocalObjectStorage,
    feed: ChangeFeed,
    business_number: str,
) -> SentMessageResponse:
    to = normalize_contact_id(contact_id)
    if not data:
        raise WhatsAppValidationError(f"File '{filename}' is empty.")
    media_type = media_type_for(content_type)
    safe_name = normalize_object_path(Path(filename).name or "upload")
    if "." not in safe_name:
        safe_name = f"{safe_name}{extension_for(content_type)}"

    media_id = await client.upload_media(data, filename=safe_name, content_type=content_type)
    public_url = await storage.upload(f"whatsapp/outbound/{media_id}/{safe_name}", data)
    body = build_media_message(
        to,
        media_type,
        media_id=media_id,
        caption=caption,
        filename=safe_name if media_type == "document" else None,
    )
    return await _send(
        session,
        contact_id=to,
        payload=body,
        media_url=public_url,
        client=client,
        feed=feed,
        business_number=business_number,
    )
