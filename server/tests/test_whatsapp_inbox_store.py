from __future__ import annotations

from datetime import datetime, timedelta, timezone

from server.features.whatsapp.inbox import Conversation, ConversationStore, sort_conversations
from server.features.whatsapp.types import InboxMessage

T0 = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


def _message(message_id: str, *, at: datetime, body: str = "hi") -> InboxMessage:
    return InboxMessage(
        id=message_id,
        conversation_id="A",
        direction="inbound",
        content={"type": "text", "body": body},
        created_at=at,
    )


def test_sort_conversations_is_stable_for_equal_timestamps():
    items = [
        Conversation(contact_id="empty"),
        Conversation(contact_id="first", last_message_timestamp=T0),
        Conversation(contact_id="second", last_message_timestamp=T0),
        Conversation(contact_id="newest", last_message_timestamp=T0 + timedelta(minutes=1)),
    ]

    ordered = sort_conversations(items)

    assert [item.contact_id for item in ordered] == ["newest", "first", "second", "empty"]


def test_commit_dedups_and_orders_messages():
    store = ConversationStore()

    store.commit(
        add_messages=[
            _message("m2", at=T0 + timedelta(seconds=2)),
            _message("m1", at=T0),
            _message("m2", at=T0 + timedelta(seconds=2)),
            _message("m3", at=T0 + timedelta(seconds=1)),
        ]
    )

    assert [item.id for item in store.messages("A")] == ["m1", "m3", "m2"]
    assert store.has_message("A", "m3") is True


def test_update_moves_message_when_created_at_changes_and_ignores_unknown_ids():
    store = ConversationStore()
    store.commit(add_messages=[_message("m1", at=T0), _message("m2", at=T0 + timedelta(seconds=5))])

    store.commit(
        update_messages=[
            _message("m1", at=T0 + timedelta(seconds=9), body="moved"),
            _message("ghost", at=T0),
        ]
    )

    assert [item.id for item in store.messages("A")] == ["m2", "m1"]
    assert store.messages("A")[1].content.body == "moved"


def test_listeners_get_one_snapshot_per_commit_and_failures_are_isolated():
    store = ConversationStore()
    seen = []

    def _broken(_snapshot):
        raise RuntimeError("boom")

    store.subscribe(_broken)
    unsubscribe = store.subscribe(seen.append)

    store.commit(conversations=[Conversation(contact_id="A")], active_contact_id="A", loading=True)
    unsubscribe()
    store.commit(loading=False)

    assert len(seen) == 1
    assert seen[0].active_contact_id == "A"
    assert seen[0].loading is True
    assert store.loading is False
