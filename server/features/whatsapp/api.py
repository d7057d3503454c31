from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import PlainTextResponse, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from server.core.config import get_settings
from server.db.session import get_db_session, get_session_factory
from server.features.media.storage import LocalObjectStorage
from server.features.realtime import ChangeFeed
from server.features.shared.auth import get_current_user_id
from server.features.shared.dependencies import (
    get_change_feed,
    get_inbox_registry,
    get_object_storage,
    get_whatsapp_client,
)
from server.features.shared.errors import raise_http_error

from .client import WhatsAppCloudClient
from .errors import InboxSyncError, WebhookVerificationError
from .inbox import InboxRegistry
from .service import (
    close_conversation,
    get_inbox_snapshot,
    list_thread,
    open_conversation,
    send_media_upload,
    send_message,
    start_inbox_session,
)
from .streaming import encode_sse, snapshot_response
from .types import (
    ConversationClosedResponse,
    InboxSnapshotResponse,
    SendMessageInput,
    SentMessageResponse,
    ThreadResponse,
    WebhookAck,
)
from .webhook import process_webhook

logger = logging.getLogger(__name__)

webhook_router = APIRouter(prefix="/api/whatsapp", tags=["whatsapp"])
router = APIRouter(
    prefix="/api/whatsapp",
    tags=["whatsapp"],
    dependencies=[Depends(get_current_user_id)],
)


def _raise_http_error(exc: Exception) -> None:
    if isinstance(exc, InboxSyncError):
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    raise_http_error(exc)


async def _read_upload_limited(upload: UploadFile, *, max_size: int) -> bytes:
    total = 0
    chunks: list[bytes] = []
    while True:
        chunk = await upload.read(1024 * 1024)
        if not chunk:
            break
        total += len(chunk)
        if total > max_size:
            raise HTTPException(
                status_code=413,
                detail=f"File '{upload.filename or 'upload'}' exceeds max size of {max_size} bytes.",
            )
        chunks.append(chunk)
    return b"".join(chunks)


@webhook_router.get("/webhook", response_class=PlainTextResponse)
async def verify_webhook(
    mode: str | None = Query(default=None, alias="hub.mode"),
    token: str | None = Query(default=None, alias="hub.verify_token"),
    challenge: str | None = Query(default=None, alias="hub.challenge"),
    client: WhatsAppCloudClient = Depends(get_whatsapp_client),
) -> PlainTextResponse:
    if not mode or not token or not challenge:
        raise HTTPException(status_code=400, detail="Missing parameters.")
    try:
        return PlainTextResponse(client.verify_webhook(mode, token, challenge))
    except WebhookVerificationError as exc:
        logger.warning("Webhook verification failed for mode %r.", mode)
        raise HTTPException(status_code=403, detail="Verification failed.") from exc


@webhook_router.post("/webhook", response_model=WebhookAck)
async def receive_webhook(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    client: WhatsAppCloudClient = Depends(get_whatsapp_client),
    storage: LocalObjectStorage = Depends(get_object_storage),
    feed: ChangeFeed = Depends(get_change_feed),
) -> WebhookAck:
    body = await request.body()
    if not client.verify_signature(body, request.headers.get("X-Hub-Signature-256")):
        logger.warning("Rejected webhook delivery with an invalid signature.")
        raise HTTPException(status_code=403, detail="Invalid signature.")

    # The provider retries anything but a 200, so internal failures are only logged.
    try:
        payload = json.loads(body or b"{}")
        if not isinstance(payload, dict):
            raise ValueError("Webhook payload must be a JSON object.")
        await process_webhook(
            session,
            payload,
            client=client,
            storage=storage,
            feed=feed,
            business_number=get_settings().business_number,
        )
    except Exception:
        logger.exception("Webhook handling failed.")
    return WebhookAck()


@router.get("/conversations", response_model=InboxSnapshotResponse)
async def get_conversations(
    device_id: str = Query(min_length=1, max_length=128),
    registry: InboxRegistry = Depends(get_inbox_registry),
    feed: ChangeFeed = Depends(get_change_feed),
) -> InboxSnapshotResponse:
    try:
        snapshot = await get_inbox_snapshot(
            registry,
            device_id=device_id,
            feed=feed,
            session_factory=get_session_factory(),
            settings=get_settings(),
        )
    except Exception as exc:
        _raise_http_error(exc)
    return snapshot_response(snapshot)


@router.get("/conversations/{contact_id}/messages", response_model=ThreadResponse)
async def get_thread(
    contact_id: str,
    limit: int = Query(default=200, ge=1, le=1000),
    session: AsyncSession = Depends(get_db_session),
) -> ThreadResponse:
    try:
        messages = await list_thread(
            session,
            contact_id=contact_id,
            business_number=get_settings().business_number,
            limit=limit,
        )
    except Exception as exc:
        _raise_http_error(exc)
    return ThreadResponse(contact_id=contact_id.lstrip("+"), messages=messages)


@router.post("/conversations/{contact_id}/open", response_model=ThreadResponse)
async def post_open_conversation(
    contact_id: str,
    device_id: str = Query(min_length=1, max_length=128),
    registry: InboxRegistry = Depends(get_inbox_registry),
    feed: ChangeFeed = Depends(get_change_feed),
) -> ThreadResponse:
    try:
        messages = await open_conversation(
            registry,
            device_id=device_id,
            contact_id=contact_id,
            feed=feed,
            session_factory=get_session_factory(),
            settings=get_settings(),
        )
    except Exception as exc:
        _raise_http_error(exc)
    return ThreadResponse(contact_id=contact_id.lstrip("+"), messages=messages)


@router.post("/conversations/close", response_model=ConversationClosedResponse)
async def post_close_conversation(
    device_id: str = Query(min_length=1, max_length=128),
    registry: InboxRegistry = Depends(get_inbox_registry),
) -> ConversationClosedResponse:
    closed = await close_conversation(registry, device_id=device_id)
    return ConversationClosedResponse(device_id=device_id, closed=closed)


@router.post("/conversations/{contact_id}/messages", response_model=SentMessageResponse)
async def post_message(
    contact_id: str,
    payload: SendMessageInput,
    session: AsyncSession = Depends(get_db_session),
    client: WhatsAppCloudClient = Depends(get_whatsapp_client),
    feed: ChangeFeed = Depends(get_change_feed),
) -> SentMessageResponse:
    try:
        return await send_message(
            session,
            contact_id=contact_id,
            payload=payload,
            client=client,
            feed=feed,
            business_number=get_settings().business_number,
        )
    except Exception as exc:
        _raise_http_error(exc)


@router.post("/conversations/{contact_id}/media", response_model=SentMessageResponse)
async def post_media(
    contact_id: str,
    file: UploadFile = File(...),
    caption: str | None = Form(default=None, max_length=1024),
    session: AsyncSession = Depends(get_db_session),
    client: WhatsAppCloudClient = Depends(get_whatsapp_client),
    storage: LocalObjectStorage = Depends(get_object_storage),
    feed: ChangeFeed = Depends(get_change_feed),
) -> SentMessageResponse:
    settings = get_settings()
    if not file.filename:
        raise HTTPException(status_code=400, detail="Uploaded file is missing a filename.")
    data = await _read_upload_limited(file, max_size=settings.media_max_size_bytes)
    try:
        return await send_media_upload(
            session,
            contact_id=contact_id,
            data=data,
            filename=file.filename,
            content_type=(file.content_type or "application/octet-stream").lower(),
            caption=caption,
            client=client,
            storage=storage,
            feed=feed,
            business_number=settings.business_number,
        )
    except Exception as exc:
        _raise_http_error(exc)


@router.get("/inbox/stream")
async def stream_inbox(
    request: Request,
    device_id: str = Query(min_length=1, max_length=128),
    registry: InboxRegistry = Depends(get_inbox_registry),
    feed: ChangeFeed = Depends(get_change_feed),
) -> StreamingResponse:
    try:
        inbox = await start_inbox_session(
            registry,
            device_id=device_id,
            feed=feed,
            session_factory=get_session_factory(),
            settings=get_settings(),
        )
    except Exception as exc:
        _raise_http_error(exc)

    async def _event_stream():
        try:
            async for event in inbox.events():
                if await request.is_disconnected():
                    break
                yield encode_sse(event)
        finally:
            registry.unregister(inbox)
            await inbox.close()

    return StreamingResponse(_event_stream(), media_type="text/event-stream")
