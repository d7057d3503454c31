from __future__ import annotations

import hashlib
import hmac
import importlib
import json
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

whatsapp_api = importlib.import_module("server.features.whatsapp.api")
from server.features.realtime import ChangeFeed
from server.features.shared.dependencies import (
    get_change_feed,
    get_inbox_registry,
    get_object_storage,
    get_whatsapp_client,
)
from server.features.whatsapp.client import WhatsAppCloudClient
from server.features.whatsapp.errors import InboxSyncError, WhatsAppApiError, WhatsAppValidationError
from server.features.whatsapp.inbox import Conversation, InboxRegistry, InboxSnapshot
from server.features.whatsapp.types import InboxMessage, SentMessageResponse
from server.main import app

BUSINESS = "15550009999"
AUTH = {"X-User-Id": str(uuid4())}
T0 = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


class _DummySession:
    pass


@pytest.fixture(autouse=True)
def _overrides(monkeypatch):
    client = WhatsAppCloudClient(
        access_token="token",
        phone_number_id="123",
        webhook_verify_token="verify-me",
        app_secret="shh",
    )
    feed = ChangeFeed()
    registry = InboxRegistry()

    async def _override_db():
        yield _DummySession()

    app.dependency_overrides[whatsapp_api.get_db_session] = _override_db
    app.dependency_overrides[get_whatsapp_client] = lambda: client
    app.dependency_overrides[get_change_feed] = lambda: feed
    app.dependency_overrides[get_inbox_registry] = lambda: registry
    app.dependency_overrides[get_object_storage] = lambda: SimpleNamespace()
    monkeypatch.setattr(
        whatsapp_api,
        "get_settings",
        lambda: SimpleNamespace(business_number=BUSINESS, media_max_size_bytes=8),
    )
    yield
    app.dependency_overrides.clear()


def _signed(body: bytes, secret: str = "shh") -> dict[str, str]:
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return {"X-Hub-Signature-256": f"sha256={digest}", "Content-Type": "application/json"}


def test_webhook_handshake():
    client = TestClient(app)

    missing = client.get("/api/whatsapp/webhook", params={"hub.mode": "subscribe"})
    assert missing.status_code == 400

    wrong = client.get(
        "/api/whatsapp/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "42"},
    )
    assert wrong.status_code == 403

    ok = client.get(
        "/api/whatsapp/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "42"},
    )
    assert ok.status_code == 200
    assert ok.text == "42"


def test_webhook_delivery_rejects_bad_signature(monkeypatch):
    calls = []

    async def _process(*args, **kwargs):
        calls.append(args)

    monkeypatch.setattr(whatsapp_api, "process_webhook", _process)
    client = TestClient(app)
    body = json.dumps({"object": "whatsapp_business_account", "entry": []}).encode()

    response = client.post(
        "/api/whatsapp/webhook",
        content=body,
        headers={"X-Hub-Signature-256": "sha256=deadbeef", "Content-Type": "application/json"},
    )

    assert response.status_code == 403
    assert calls == []


def test_webhook_delivery_acknowledges_even_when_processing_fails(monkeypatch):
    received = []

    async def _process(_session, payload, **kwargs):
        received.append((payload, kwargs["business_number"]))
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(whatsapp_api, "process_webhook", _process)
    client = TestClient(app)
    body = json.dumps({"object": "whatsapp_business_account", "entry": []}).encode()

    response = client.post("/api/whatsapp/webhook", content=body, headers=_signed(body))
    malformed = client.post("/api/whatsapp/webhook", content=b"[1, 2]", headers=_signed(b"[1, 2]"))

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert malformed.status_code == 200
    assert received == [({"object": "whatsapp_business_account", "entry": []}, BUSINESS)]


def test_console_routes_require_a_user():
    client = TestClient(app)

    response = client.get("/api/whatsapp/conversations", params={"device_id": "device-1"})

    assert response.status_code == 401


def test_get_conversations_returns_snapshot(monkeypatch):
    async def _snapshot(_registry, *, device_id, **kwargs):
        assert device_id == "device-1"
        return InboxSnapshot(
            conversations=(
                Conversation(
                    contact_id="15550001",
                    display_name="Ada",
                    last_message_preview="hello",
                    last_message_timestamp=T0,
                    unread_count=2,
                ),
            ),
            active_contact_id=None,
            loading=False,
            error=None,
        )

    monkeypatch.setattr(whatsapp_api, "get_inbox_snapshot", _snapshot)
    client = TestClient(app)

    response = client.get("/api/whatsapp/conversations", params={"device_id": "device-1"}, headers=AUTH)

    assert response.status_code == 200
    payload = response.json()
    assert payload["loading"] is False
    assert payload["conversations"][0]["contact_id"] == "15550001"
    assert payload["conversations"][0]["unread_count"] == 2


def test_get_conversations_maps_sync_failure_to_503(monkeypatch):
    async def _snapshot(*args, **kwargs):
        raise InboxSyncError("Failed to load conversations.")

    monkeypatch.setattr(whatsapp_api, "get_inbox_snapshot", _snapshot)
    client = TestClient(app)

    response = client.get("/api/whatsapp/conversations", params={"device_id": "device-1"}, headers=AUTH)

    assert response.status_code == 503


def test_post_message_maps_domain_errors(monkeypatch):
    outcomes = iter(
        [
            WhatsAppValidationError("contact_id must be a phone number in international format."),
            WhatsAppApiError("WhatsApp API returned 500."),
        ]
    )

    async def _send(*args, **kwargs):
        raise next(outcomes)

    monkeypatch.setattr(whatsapp_api, "send_message", _send)
    client = TestClient(app)

    invalid = client.post(
        "/api/whatsapp/conversations/abc/messages",
        json={"type": "text", "body": "hi"},
        headers=AUTH,
    )
    upstream = client.post(
        "/api/whatsapp/conversations/15550001/messages",
        json={"type": "text", "body": "hi"},
        headers=AUTH,
    )

    assert invalid.status_code == 400
    assert upstream.status_code == 502


def test_post_message_returns_sent_message(monkeypatch):
    async def _send(_session, *, contact_id, payload, business_number, **kwargs):
        assert business_number == BUSINESS
        return SentMessageResponse(
            message=InboxMessage(
                id="m1",
                conversation_id=contact_id,
                direction="outbound",
                content={"type": "text", "body": payload.body},
                status="sent",
                created_at=T0,
            ),
            provider_message_id="wamid.1",
        )

    monkeypatch.setattr(whatsapp_api, "send_message", _send)
    client = TestClient(app)

    response = client.post(
        "/api/whatsapp/conversations/15550001/messages",
        json={"type": "text", "body": "hi there"},
        headers=AUTH,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["provider_message_id"] == "wamid.1"
    assert body["message"]["status"] == "sent"
    assert body["message"]["content"] == {"type": "text", "body": "hi there"}


def test_post_media_rejects_oversized_upload(monkeypatch):
    async def _upload(*args, **kwargs):
        raise AssertionError("upload should not be attempted")

    monkeypatch.setattr(whatsapp_api, "send_media_upload", _upload)
    client = TestClient(app)

    response = client.post(
        "/api/whatsapp/conversations/15550001/media",
        files={"file": ("photo.jpg", b"0123456789", "image/jpeg")},
        headers=AUTH,
    )

    assert response.status_code == 413


def test_post_close_conversation_is_device_scoped(monkeypatch):
    calls: list[str] = []

    async def _close(_registry, *, device_id):
        calls.append(device_id)
        return device_id == "device-1"

    monkeypatch.setattr(whatsapp_api, "close_conversation", _close)
    client = TestClient(app)

    closed = client.post("/api/whatsapp/conversations/close", params={"device_id": "device-1"}, headers=AUTH)
    unknown = client.post("/api/whatsapp/conversations/close", params={"device_id": "device-2"}, headers=AUTH)
    missing = client.post("/api/whatsapp/conversations/close", headers=AUTH)

    assert closed.status_code == 200
    assert closed.json() == {"device_id": "device-1", "closed": True}
    assert unknown.json() == {"device_id": "device-2", "closed": False}
    assert missing.status_code == 422
    assert calls == ["device-1", "device-2"]
