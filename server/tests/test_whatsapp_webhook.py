from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

from server.features.realtime import ChangeFeed
from server.features.whatsapp import webhook as webhook_module
from server.features.whatsapp.errors import WhatsAppApiError
from server.features.whatsapp.webhook import next_status, process_webhook, provider_timestamp

BUSINESS = "15550000"


class _DummySession:
    def __init__(self):
        self.rollbacks = 0

    async def rollback(self):
        self.rollbacks += 1


class _FakeMediaClient:
    def __init__(self, *, fail: bool = False):
        self.fail = fail

    async def get_media_url(self, media_id):
        if self.fail:
            raise WhatsAppApiError("expired")
        return f"https://cdn.example/{media_id}", "image/jpeg"

    async def download_media(self, url):
        return b"bytes"


class _FakeStorage:
    def __init__(self):
        self.uploads: list[str] = []

    async def upload(self, path, data):
        self.uploads.append(path)
        return f"http://localhost:8000/media/{path}"


class _FakeRepo:
    def __init__(self):
        self.rows: dict[str, SimpleNamespace] = {}
        self.contacts: dict[str, str | None] = {}

    async def upsert_contact(self, _session, *, wa_id, profile_name):
        self.contacts[wa_id] = profile_name

    async def get_message_by_provider_id(self, _session, *, message_id):
        return self.rows.get(message_id)

    async def create_message(
        self,
        _session,
        *,
        message_id,
        from_number,
        to_number,
        message_type,
        content,
        status,
        media_url=None,
        created_at=None,
    ):
        row = SimpleNamespace(
            id=uuid4(),
            message_id=message_id,
            from_number=from_number,
            to_number=to_number,
            type=message_type,
            content=content,
            media_url=media_url,
            status=status,
            created_at=created_at,
        )
        self.rows[message_id] = row
        return row

    async def update_message(self, _session, *, row, status=None, message_id=None):
        if status is not None:
            row.status = status
        return row


def _payload(*, messages=(), statuses=(), contacts=(), obj="whatsapp_business_account"):
    return {
        "object": obj,
        "entry": [
            {
                "id": "waba-1",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "contacts": list(contacts),
                            "messages": list(messages),
                            "statuses": list(statuses),
                        },
                    }
                ],
            }
        ],
    }


@pytest.fixture
def fake_repo(monkeypatch):
    repo = _FakeRepo()
    for name in ("upsert_contact", "get_message_by_provider_id", "create_message", "update_message"):
        monkeypatch.setattr(webhook_module.repo, name, getattr(repo, name))
    return repo


def _run(payload, *, client=None, storage=None, feed=None, session=None):
    return asyncio.run(
        process_webhook(
            session or _DummySession(),
            payload,
            client=client or _FakeMediaClient(),
            storage=storage or _FakeStorage(),
            feed=feed or ChangeFeed(),
            business_number=BUSINESS,
        )
    )


@pytest.mark.parametrize(
    ("current", "incoming", "expected"),
    [
        ("pending", "sent", "sent"),
        ("sent", "read", "read"),
        ("read", "delivered", None),
        ("delivered", "delivered", None),
        ("read", "failed", "failed"),
        ("failed", "read", None),
        ("received", "read", None),
        ("sent", "deleted", None),
    ],
)
def test_next_status_never_moves_backwards(current, incoming, expected):
    assert next_status(current, incoming) == expected


def test_provider_timestamp_parses_epoch_seconds():
    assert provider_timestamp("1767261600") == datetime(2026, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert provider_timestamp("garbage").tzinfo is timezone.utc


def test_inbound_message_is_stored_once_and_published(fake_repo):
    feed = ChangeFeed()
    published = []

    async def _handler(event):
        published.append((event.kind, event.row["from_number"]))

    feed.subscribe("whatsapp_messages", _handler)
    message = {
        "from": "15550001",
        "id": "wamid.1",
        "timestamp": "1767261600",
        "type": "text",
        "text": {"body": "Hola"},
    }
    contact = {"wa_id": "15550001", "profile": {"name": "Ana"}}

    first = _run(_payload(messages=[message], contacts=[contact]), feed=feed)
    second = _run(_payload(messages=[message]), feed=feed)

    assert (first.messages, first.contacts, second.messages, second.duplicates) == (1, 1, 0, 1)
    assert fake_repo.contacts == {"15550001": "Ana"}
    assert fake_repo.rows["wamid.1"].to_number == BUSINESS
    assert fake_repo.rows["wamid.1"].status == "received"
    assert published == [("INSERT", "15550001")]


def test_inbound_media_is_copied_to_storage(fake_repo):
    storage = _FakeStorage()
    message = {
        "from": "15550001",
        "id": "wamid.2",
        "timestamp": "1767261600",
        "type": "image",
        "image": {"id": "media-9", "mime_type": "image/jpeg", "caption": "Look"},
    }

    _run(_payload(messages=[message]), storage=storage)

    assert storage.uploads == ["whatsapp/media-9.jpg"]
    assert fake_repo.rows["wamid.2"].media_url == "http://localhost:8000/media/whatsapp/media-9.jpg"


def test_media_fetch_failure_still_stores_message(fake_repo):
    message = {
        "from": "15550001",
        "id": "wamid.3",
        "timestamp": "1767261600",
        "type": "image",
        "image": {"id": "media-10"},
    }

    result = _run(_payload(messages=[message]), client=_FakeMediaClient(fail=True))

    assert result.messages == 1
    assert fake_repo.rows["wamid.3"].media_url is None


def test_status_receipts_update_forward_only(fake_repo):
    asyncio.run(
        fake_repo.create_message(
            None,
            message_id="wamid.out",
            from_number=BUSINESS,
            to_number="15550001",
            message_type="text",
            content={"text": {"body": "hi"}},
            status="sent",
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
    )
    statuses = [
        {"id": "wamid.out", "status": "read"},
        {"id": "wamid.out", "status": "delivered"},
        {"id": "wamid.unknown", "status": "read"},
    ]

    result = _run(_payload(statuses=statuses))

    assert result.statuses == 1
    assert fake_repo.rows["wamid.out"].status == "read"


def test_item_failures_are_logged_and_rolled_back(fake_repo, monkeypatch):
    async def _broken_create(*_args, **_kwargs):
        raise RuntimeError("db down")

    monkeypatch.setattr(webhook_module.repo, "create_message", _broken_create)
    session = _DummySession()
    message = {"from": "15550001", "id": "wamid.4", "timestamp": "1", "type": "text", "text": {"body": "x"}}

    result = _run(_payload(messages=[message]), session=session)

    assert result.failures == 1
    assert session.rollbacks == 1


def test_other_objects_are_ignored(fake_repo):
    result = _run(_payload(messages=[{"from": "1", "id": "x"}], obj="page"))

    assert result.messages == 0
    assert fake_repo.rows == {}
