from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, Literal, Protocol, Sequence

from ..errors import InboxSyncError
from ..types import InboxMessage
from .last_seen import LastSeenTracker
from .preview import message_preview
from .store import Conversation, ConversationStore, sort_conversations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContactProfile:
    contact_id: str
    display_name: str | None = None


class ConversationSource(Protocol):
    """Bulk reads the reconciler needs to build its first snapshot."""

    async def fetch_contacts(self, contact_ids: Sequence[str]) -> list[ContactProfile]: ...

    async def fetch_last_message(self, contact_id: str) -> InboxMessage | None: ...

    async def count_unread(
        self,
        contact_id: str,
        since: datetime | None,
        until: datetime,
    ) -> int: ...


_PendingKind = Literal["insert", "update"]


def _is_latest(conversation: Conversation, message: InboxMessage) -> bool:
    return (
        conversation.last_message_timestamp is None
        or message.created_at >= conversation.last_message_timestamp
    )


def _upsert(conversations: Iterable[Conversation], updated: Conversation) -> list[Conversation]:
    items = list(conversations)
    for index, item in enumerate(items):
        if item.contact_id == updated.contact_id:
            items[index] = updated
            return items
    items.append(updated)
    return items


class InboxReconciler:
    """Keeps the conversation list consistent with the live message stream.

    ``initialize`` loads one snapshot from the source. Events that arrive while
    it runs are held back and replayed once the snapshot is committed; a
    replayed insert that is not newer than the snapshot's last message for that
    conversation only joins the thread, since the snapshot already counted it.
    Live inserts always take over the conversation preview.
    """

    def __init__(
        self,
        source: ConversationSource,
        tracker: LastSeenTracker,
        store: ConversationStore | None = None,
    ) -> None:
        self._source = source
        self._tracker = tracker
        self._store = store or ConversationStore()
        self._ready = False
        self._pending: list[tuple[_PendingKind, InboxMessage]] = []

    @property
    def store(self) -> ConversationStore:
        return self._store

    @property
    def ready(self) -> bool:
        return self._ready

    async def initialize(self, contact_ids: Iterable[str]) -> tuple[Conversation, ...]:
        ordered_ids = list(dict.fromkeys(contact_ids))
        self._ready = False
        self._store.commit(loading=True, error=None)

        try:
            profiles = await self._source.fetch_contacts(ordered_ids)
            names = {profile.contact_id: profile.display_name for profile in profiles}
            active_id = self._store.active_contact_id
            conversations: list[Conversation] = []
            last_messages: list[InboxMessage] = []
            for contact_id in ordered_ids:
                last = await self._source.fetch_last_message(contact_id)
                unread = 0
                if last is not None and contact_id != active_id:
                    # Counted up to the snapshot's last message; newer rows arrive through the replay.
                    unread = await self._source.count_unread(
                        contact_id,
                        self._tracker.get(contact_id),
                        last.created_at,
                    )
                if last is not None:
                    last_messages.append(last)
                conversations.append(
                    Conversation(
                        contact_id=contact_id,
                        display_name=names.get(contact_id),
                        last_message_preview=message_preview(last.content) if last else "",
                        last_message_timestamp=last.created_at if last else None,
                        unread_count=unread,
                    )
                )
        except Exception as exc:
            logger.exception("Inbox initialization failed.")
            self._store.commit(loading=False, error="Failed to load conversations.")
            raise InboxSyncError("Failed to load conversations.") from exc

        snapshot_times = {
            item.contact_id: item.last_message_timestamp for item in conversations
        }
        self._store.commit(
            conversations=sort_conversations(conversations),
            add_messages=last_messages,
            loading=False,
            error=None,
        )
        self._ready = True
        logger.info("Inbox initialized with %d conversations.", len(conversations))

        pending, self._pending = self._pending, []
        for kind, message in pending:
            try:
                if kind == "update":
                    self._apply_update(message)
                    continue
                snapshot_at = snapshot_times.get(message.conversation_id)
                if snapshot_at is not None and message.created_at <= snapshot_at:
                    self._store.commit(add_messages=[message])
                else:
                    self._apply_insert(message, only_if_latest=True)
            except Exception:
                logger.exception("Failed to replay buffered inbox event %s.", message.id)

        if active_id is not None:
            self.on_conversation_opened(active_id)
        return self._store.conversations

    def on_message_inserted(self, message: InboxMessage) -> None:
        if not self._ready:
            self._pending.append(("insert", message))
            return
        try:
            self._apply_insert(message)
        except Exception:
            logger.exception("Failed to apply inserted message %s.", message.id)

    def on_message_updated(self, message: InboxMessage) -> None:
        if not self._ready:
            self._pending.append(("update", message))
            return
        try:
            self._apply_update(message)
        except Exception:
            logger.exception("Failed to apply updated message %s.", message.id)

    def on_conversation_opened(self, contact_id: str) -> None:
        current = self._store.get(contact_id)
        if current is None:
            self._store.commit(active_contact_id=contact_id)
            return
        if current.last_message_timestamp is not None:
            self._tracker.set(contact_id, current.last_message_timestamp)
        self._store.commit(
            conversations=_upsert(self._store.conversations, replace(current, unread_count=0)),
            active_contact_id=contact_id,
        )

    def on_conversation_closed(self) -> None:
        if self._store.active_contact_id is not None:
            self._store.commit(active_contact_id=None)

    def load_thread(self, contact_id: str, messages: Iterable[InboxMessage]) -> tuple[InboxMessage, ...]:
        thread = [message for message in messages if message.conversation_id == contact_id]
        self._store.commit(add_messages=thread)
        return self._store.messages(contact_id)

    def _counts_as_unread(self, message: InboxMessage) -> bool:
        if message.direction != "inbound":
            return False
        if message.conversation_id == self._store.active_contact_id:
            return False
        mark = self._tracker.get(message.conversation_id)
        return mark is None or message.created_at > mark

    def _apply_insert(self, message: InboxMessage, *, only_if_latest: bool = False) -> None:
        contact_id = message.conversation_id
        if self._store.has_message(contact_id, message.id):
            logger.debug("Ignoring duplicate insert for message %s.", message.id)
            return

        current = self._store.get(contact_id) or Conversation(contact_id=contact_id)
        unread = current.unread_count + 1 if self._counts_as_unread(message) else current.unread_count
        updated = replace(current, unread_count=unread)
        if not only_if_latest or _is_latest(current, message):
            updated = replace(
                updated,
                last_message_preview=message_preview(message.content),
                last_message_timestamp=message.created_at,
            )
        self._store.commit(
            conversations=sort_conversations(_upsert(self._store.conversations, updated)),
            add_messages=[message],
        )

    def _apply_update(self, message: InboxMessage) -> None:
        contact_id = message.conversation_id
        current = self._store.get(contact_id) or Conversation(contact_id=contact_id)
        conversations = None
        if _is_latest(current, message):
            updated = replace(
                current,
                last_message_preview=message_preview(message.content),
                last_message_timestamp=message.created_at,
            )
            conversations = sort_conversations(_upsert(self._store.conversations, updated))
        self._store.commit(conversations=conversations, update_messages=[message])
