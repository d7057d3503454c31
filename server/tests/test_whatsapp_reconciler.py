from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from server.features.whatsapp.errors import InboxSyncError
from server.features.whatsapp.inbox import (
    ContactProfile,
    InboxReconciler,
    LastSeenTracker,
    MemoryKeyValueStore,
)
from server.features.whatsapp.types import InboxMessage

T0 = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


def _message(
    message_id: str,
    contact_id: str = "15550001",
    *,
    at: datetime = T0,
    body: str = "hello",
    direction: str = "inbound",
    status: str | None = None,
) -> InboxMessage:
    return InboxMessage(
        id=message_id,
        conversation_id=contact_id,
        direction=direction,
        content={"type": "text", "body": body},
        status=status if direction == "outbound" else None,
        created_at=at,
    )


class _FakeSource:
    def __init__(
        self,
        *,
        names: dict[str, str] | None = None,
        last: dict[str, InboxMessage] | None = None,
        unread: dict[str, int] | None = None,
        fail: bool = False,
        rows: list[InboxMessage] | None = None,
        during_read=None,
    ):
        self.names = names or {}
        self.last = last or {}
        self.unread = unread or {}
        self.fail = fail
        self.rows = rows
        self.during_read = during_read
        self.unread_calls: list[tuple[str, datetime | None, datetime]] = []

    async def fetch_contacts(self, contact_ids):
        if self.fail:
            raise RuntimeError("database unavailable")
        return [
            ContactProfile(contact_id=contact_id, display_name=self.names.get(contact_id))
            for contact_id in contact_ids
            if contact_id in self.names
        ]

    async def fetch_last_message(self, contact_id):
        if self.during_read is not None:
            self.during_read("last_message", contact_id)
        if self.rows is not None:
            thread = [item for item in self.rows if item.conversation_id == contact_id]
            return max(thread, key=lambda item: item.created_at, default=None)
        return self.last.get(contact_id)

    async def count_unread(self, contact_id, since, until):
        self.unread_calls.append((contact_id, since, until))
        if self.during_read is not None:
            self.during_read("unread", contact_id)
        if self.rows is not None:
            return sum(
                1
                for item in self.rows
                if item.conversation_id == contact_id
                and item.direction == "inbound"
                and (since is None or item.created_at > since)
                and item.created_at <= until
            )
        return self.unread.get(contact_id, 0)


def _reconciler(source: _FakeSource | None = None, tracker: LastSeenTracker | None = None) -> InboxReconciler:
    return InboxReconciler(source or _FakeSource(), tracker or LastSeenTracker(MemoryKeyValueStore()))


def _ready(reconciler: InboxReconciler, contact_ids=()) -> InboxReconciler:
    asyncio.run(reconciler.initialize(contact_ids))
    return reconciler


def test_initialize_orders_newest_first_and_empty_conversations_last():
    source = _FakeSource(
        names={"A": "Alice", "B": "Bob"},
        last={
            "A": _message("a1", "A", at=T0),
            "B": _message("b1", "B", at=T0 + timedelta(hours=1)),
        },
        unread={"A": 2},
    )
    reconciler = _reconciler(source)

    conversations = asyncio.run(reconciler.initialize(["A", "B", "C"]))

    assert [item.contact_id for item in conversations] == ["B", "A", "C"]
    assert conversations[1].display_name == "Alice"
    assert conversations[1].unread_count == 2
    assert conversations[2].last_message_timestamp is None
    assert conversations[2].last_message_preview == ""
    assert reconciler.ready is True
    assert reconciler.store.loading is False


def test_initialize_passes_last_seen_mark_to_unread_count():
    tracker = LastSeenTracker(MemoryKeyValueStore())
    tracker.set("A", T0)
    source = _FakeSource(last={"A": _message("a1", "A", at=T0)})

    _ready(_reconciler(source, tracker), ["A", "A"])

    assert source.unread_calls == [("A", T0, T0)]


def test_initialize_failure_sets_error_and_raises():
    reconciler = _reconciler(_FakeSource(fail=True))

    with pytest.raises(InboxSyncError):
        asyncio.run(reconciler.initialize(["A"]))

    assert reconciler.ready is False
    assert reconciler.store.loading is False
    assert reconciler.store.error == "Failed to load conversations."


def test_inserts_never_duplicate_a_conversation():
    reconciler = _ready(_reconciler())

    for index in range(5):
        reconciler.on_message_inserted(_message(f"m{index}", "A", at=T0 + timedelta(seconds=index)))
        reconciler.on_message_inserted(_message(f"n{index}", "B", at=T0 + timedelta(seconds=index)))
    reconciler.on_message_inserted(_message("m4", "A", at=T0 + timedelta(seconds=4)))

    contact_ids = [item.contact_id for item in reconciler.store.conversations]
    assert sorted(contact_ids) == ["A", "B"]
    assert reconciler.store.get("A").unread_count == 5


def test_duplicate_insert_is_ignored():
    reconciler = _ready(_reconciler())
    message = _message("m1", "A")

    reconciler.on_message_inserted(message)
    reconciler.on_message_inserted(message)

    assert reconciler.store.get("A").unread_count == 1
    assert len(reconciler.store.messages("A")) == 1


def test_thread_stays_ordered_after_out_of_order_events():
    reconciler = _ready(_reconciler())
    offsets = [5, 1, 3, 1, 0, 4]
    for index, offset in enumerate(offsets):
        reconciler.on_message_inserted(_message(f"m{index}", "A", at=T0 + timedelta(seconds=offset)))
    reconciler.on_message_updated(_message("m0", "A", at=T0 + timedelta(seconds=2), body="edited"))

    times = [item.created_at for item in reconciler.store.messages("A")]
    assert times == sorted(times)
    assert len(times) == len(offsets)


def test_open_conversation_twice_is_idempotent():
    tracker = LastSeenTracker(MemoryKeyValueStore())
    source = _FakeSource(last={"A": _message("a1", "A", at=T0)}, unread={"A": 3})
    reconciler = _ready(_reconciler(source, tracker), ["A"])

    reconciler.on_conversation_opened("A")
    first_mark = tracker.get("A")
    reconciler.on_conversation_opened("A")

    assert reconciler.store.get("A").unread_count == 0
    assert tracker.get("A") == first_mark == T0
    assert reconciler.store.active_contact_id == "A"


def test_message_before_last_seen_mark_does_not_count():
    tracker = LastSeenTracker(MemoryKeyValueStore())
    tracker.set("A", T0)
    reconciler = _ready(_reconciler(tracker=tracker))

    reconciler.on_message_inserted(_message("old", "A", at=T0 - timedelta(seconds=1)))

    assert reconciler.store.get("A").unread_count == 0


def test_message_after_last_seen_mark_counts_once():
    tracker = LastSeenTracker(MemoryKeyValueStore())
    tracker.set("A", T0)
    reconciler = _ready(_reconciler(tracker=tracker))

    reconciler.on_message_inserted(_message("new", "A", at=T0 + timedelta(seconds=1)))

    assert reconciler.store.get("A").unread_count == 1


def test_outbound_and_active_conversation_messages_do_not_count():
    reconciler = _ready(_reconciler())
    reconciler.on_message_inserted(_message("out", "A", direction="outbound", status="sent"))
    reconciler.on_conversation_opened("B")
    reconciler.on_message_inserted(_message("in", "B"))

    assert reconciler.store.get("A").unread_count == 0
    assert reconciler.store.get("B").unread_count == 0


def test_update_for_older_message_keeps_preview():
    source = _FakeSource(last={"A": _message("a2", "A", at=T0, body="latest")})
    reconciler = _ready(_reconciler(source), ["A"])
    reconciler.load_thread("A", [_message("a1", "A", at=T0 - timedelta(minutes=5), body="older")])

    reconciler.on_message_updated(_message("a1", "A", at=T0 - timedelta(minutes=5), body="older edited"))

    conversation = reconciler.store.get("A")
    assert conversation.last_message_preview == "latest"
    assert conversation.last_message_timestamp == T0
    assert reconciler.store.messages("A")[0].content.body == "older edited"


def test_update_for_latest_message_refreshes_preview_without_touching_unread():
    source = _FakeSource(last={"A": _message("a1", "A", at=T0, body="draft")}, unread={"A": 1})
    reconciler = _ready(_reconciler(source), ["A"])

    reconciler.on_message_updated(_message("a1", "A", at=T0, body="final"))

    conversation = reconciler.store.get("A")
    assert conversation.last_message_preview == "final"
    assert conversation.unread_count == 1


def test_events_before_initialize_are_replayed_once():
    snapshot_last = _message("a1", "A", at=T0)
    source = _FakeSource(last={"A": snapshot_last}, unread={"A": 1})
    reconciler = _reconciler(source)

    reconciler.on_message_inserted(snapshot_last)
    reconciler.on_message_inserted(_message("a2", "A", at=T0 + timedelta(seconds=30), body="newer"))
    assert reconciler.store.conversations == ()

    asyncio.run(reconciler.initialize(["A"]))

    conversation = reconciler.store.get("A")
    assert conversation.unread_count == 2
    assert conversation.last_message_preview == "newer"
    assert [item.id for item in reconciler.store.messages("A")] == ["a1", "a2"]


def _publishing_source(step: str, rows: list[InboxMessage], message: InboxMessage) -> tuple[_FakeSource, list]:
    holder: list[InboxReconciler] = []

    def _during(current_step, contact_id):
        if current_step == step and message not in rows:
            rows.append(message)
            holder[0].on_message_inserted(message)

    return _FakeSource(rows=rows, during_read=_during), holder


def test_insert_published_while_unread_is_counted_is_counted_once():
    newer = _message("m1", "A", at=T0 + timedelta(seconds=1), body="newer")
    source, holder = _publishing_source("unread", [_message("m0", "A", at=T0)], newer)
    reconciler = _reconciler(source)
    holder.append(reconciler)

    asyncio.run(reconciler.initialize(["A"]))

    conversation = reconciler.store.get("A")
    assert conversation.unread_count == 2
    assert conversation.last_message_preview == "newer"
    assert [item.id for item in reconciler.store.messages("A")] == ["m0", "m1"]


def test_insert_published_before_last_message_read_is_counted_once():
    newer = _message("m1", "A", at=T0 + timedelta(seconds=1), body="newer")
    source, holder = _publishing_source("last_message", [_message("m0", "A", at=T0)], newer)
    reconciler = _reconciler(source)
    holder.append(reconciler)

    asyncio.run(reconciler.initialize(["A"]))

    conversation = reconciler.store.get("A")
    assert conversation.unread_count == 2
    assert conversation.last_message_timestamp == newer.created_at
    assert [item.id for item in reconciler.store.messages("A")] == ["m1"]


def test_live_insert_always_takes_over_preview():
    reconciler = _ready(_reconciler())
    reconciler.on_message_inserted(_message("m2", "A", at=T0 + timedelta(minutes=5), body="newest"))

    reconciler.on_message_inserted(_message("m1", "A", at=T0, body="older insert"))

    conversation = reconciler.store.get("A")
    assert conversation.last_message_preview == "older insert"
    assert conversation.last_message_timestamp == T0
    assert conversation.unread_count == 2


def test_insert_preview_is_truncated():
    reconciler = _ready(_reconciler())

    reconciler.on_message_inserted(_message("m1", "A", body="x" * 51))

    assert reconciler.store.get("A").last_message_preview == "x" * 50 + "..."


def test_close_clears_active_conversation():
    reconciler = _ready(_reconciler())
    reconciler.on_conversation_opened("A")

    reconciler.on_conversation_closed()
    reconciler.on_message_inserted(_message("m1", "A"))

    assert reconciler.store.active_contact_id is None
    assert reconciler.store.get("A").unread_count == 1
