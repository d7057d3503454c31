from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Sequence

from ..types import InboxMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Conversation:
    contact_id: str
    display_name: str | None = None
    last_message_preview: str = ""
    last_message_timestamp: datetime | None = None
    unread_count: int = 0


@dataclass(frozen=True)
class InboxSnapshot:
    conversations: tuple[Conversation, ...]
    active_contact_id: str | None
    loading: bool
    error: str | None


StoreListener = Callable[[InboxSnapshot], None]

_UNSET = object()


def sort_conversations(conversations: Iterable[Conversation]) -> list[Conversation]:
    """Newest first; equal timestamps keep their order, conversations without messages go last."""
    items = list(conversations)
    dated = [item for item in items if item.last_message_timestamp is not None]
    undated = [item for item in items if item.last_message_timestamp is None]
    dated.sort(key=lambda item: item.last_message_timestamp, reverse=True)
    return dated + undated


class ConversationStore:
    """Read model behind the inbox: ordered conversations plus loaded threads."""

    def __init__(self) -> None:
        self._conversations: tuple[Conversation, ...] = ()
        self._messages: dict[str, list[InboxMessage]] = {}
        self._message_ids: dict[str, set[str]] = {}
        self._active_contact_id: str | None = None
        self._loading = False
        self._error: str | None = None
        self._listeners: list[StoreListener] = []

    @property
    def conversations(self) -> tuple[Conversation, ...]:
        return self._conversations

    @property
    def active_contact_id(self) -> str | None:
        return self._active_contact_id

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> str | None:
        return self._error

    def get(self, contact_id: str) -> Conversation | None:
        for conversation in self._conversations:
            if conversation.contact_id == contact_id:
                return conversation
        return None

    def messages(self, contact_id: str) -> tuple[InboxMessage, ...]:
        return tuple(self._messages.get(contact_id, ()))

    def has_message(self, contact_id: str, message_id: str) -> bool:
        return message_id in self._message_ids.get(contact_id, ())

    def snapshot(self) -> InboxSnapshot:
        return InboxSnapshot(
            conversations=self._conversations,
            active_contact_id=self._active_contact_id,
            loading=self._loading,
            error=self._error,
        )

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def commit(
        self,
        *,
        conversations: Sequence[Conversation] | None = None,
        add_messages: Sequence[InboxMessage] = (),
        update_messages: Sequence[InboxMessage] = (),
        active_contact_id: object = _UNSET,
        loading: bool | None = None,
        error: object = _UNSET,
    ) -> None:
        if conversations is not None:
            self._conversations = tuple(conversations)
        for message in add_messages:
            self._insert_message(message)
        for message in update_messages:
            self._replace_message(message)
        if active_contact_id is not _UNSET:
            self._active_contact_id = active_contact_id  # type: ignore[assignment]
        if loading is not None:
            self._loading = loading
        if error is not _UNSET:
            self._error = error  # type: ignore[assignment]
        self._notify()

    def _insert_message(self, message: InboxMessage) -> bool:
        contact_id = message.conversation_id
        known = self._message_ids.setdefault(contact_id, set())
        if message.id in known:
            return False
        thread = self._messages.setdefault(contact_id, [])
        bisect.insort_right(thread, message, key=lambda item: item.created_at)
        known.add(message.id)
        return True

    def _replace_message(self, message: InboxMessage) -> bool:
        thread = self._messages.get(message.conversation_id)
        if not thread:
            return False
        for index, existing in enumerate(thread):
            if existing.id != message.id:
                continue
            if existing.created_at == message.created_at:
                thread[index] = message
            else:
                del thread[index]
                bisect.insort_right(thread, message, key=lambda item: item.created_at)
            return True
        return False

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Inbox store listener failed.")
