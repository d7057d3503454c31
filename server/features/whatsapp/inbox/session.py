from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Iterable

from server.features.realtime import ChangeFeed, RowEvent, RowFilter, Subscription

from ..errors import MessageParseError
from ..events import MESSAGES_TABLE, parse_message_row
from ..streaming import InboxStreamEvent, SnapshotEvent, ThreadEvent, snapshot_response
from ..types import InboxMessage
from .reconciler import InboxReconciler
from .store import InboxSnapshot

logger = logging.getLogger(__name__)

ThreadLoader = Callable[[str], Awaitable[list[InboxMessage]]]


class InboxSession:
    """One device's live view of the inbox.

    The session listens on the whole ``whatsapp_messages`` feed for the
    conversation list, and on a contact-filtered subscription for the thread
    that is currently open. Store changes are queued as stream events.
    """

    def __init__(
        self,
        *,
        device_id: str,
        feed: ChangeFeed,
        reconciler: InboxReconciler,
        load_thread: ThreadLoader,
        business_number: str,
    ) -> None:
        self.device_id = device_id
        self._feed = feed
        self._reconciler = reconciler
        self._load_thread = load_thread
        self._business_number = business_number
        self._events: asyncio.Queue[InboxStreamEvent | None] = asyncio.Queue()
        self._list_subscription: Subscription | None = None
        self._thread_subscription: Subscription | None = None
        self._open_contact_id: str | None = None
        self._closed = False
        self._unsubscribe_store = reconciler.store.subscribe(self._on_store_change)

    @property
    def reconciler(self) -> InboxReconciler:
        return self._reconciler

    @property
    def open_contact_id(self) -> str | None:
        return self._open_contact_id

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self, contact_ids: Iterable[str]) -> InboxSnapshot:
        # Subscribe first so inserts racing the bulk read are buffered, not lost.
        self._list_subscription = self._feed.subscribe(MESSAGES_TABLE, self._on_list_event)
        await self._reconciler.initialize(contact_ids)
        return self._reconciler.store.snapshot()

    async def open_conversation(self, contact_id: str) -> list[InboxMessage]:
        if self._thread_subscription is not None:
            await self._thread_subscription.close()
            self._thread_subscription = None

        self._open_contact_id = contact_id
        self._thread_subscription = self._feed.subscribe(
            MESSAGES_TABLE,
            self._on_thread_event,
            row_filter=RowFilter.any_of(("from_number", "to_number"), contact_id),
        )
        history = await self._load_thread(contact_id)
        self._reconciler.load_thread(contact_id, history)
        self._reconciler.on_conversation_opened(contact_id)
        return self._push_thread(contact_id)

    async def close_conversation(self) -> None:
        if self._thread_subscription is not None:
            await self._thread_subscription.close()
            self._thread_subscription = None
        self._open_contact_id = None
        self._reconciler.on_conversation_closed()

    async def events(self) -> AsyncIterator[InboxStreamEvent]:
        yield SnapshotEvent(inbox=snapshot_response(self._reconciler.store.snapshot()))
        while True:
            event = await self._events.get()
            if event is None:
                return
            yield event

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._thread_subscription is not None:
            await self._thread_subscription.close()
            self._thread_subscription = None
        if self._list_subscription is not None:
            await self._list_subscription.close()
            self._list_subscription = None
        self._unsubscribe_store()
        self._events.put_nowait(None)
        logger.debug("Closed inbox session for device %s.", self.device_id)

    def _parse(self, event: RowEvent) -> InboxMessage | None:
        try:
            return parse_message_row(event.row, business_number=self._business_number)
        except MessageParseError:
            logger.warning("Skipping unparseable %s event on %s.", event.kind, event.table, exc_info=True)
            return None

    async def _on_list_event(self, event: RowEvent) -> None:
        message = self._parse(event)
        if message is None:
            return
        if event.kind == "INSERT":
            self._reconciler.on_message_inserted(message)
        else:
            self._reconciler.on_message_updated(message)

    async def _on_thread_event(self, event: RowEvent) -> None:
        # The list subscription was opened first, so the store already holds this row.
        if self._open_contact_id is not None:
            self._push_thread(self._open_contact_id)

    def _push_thread(self, contact_id: str) -> list[InboxMessage]:
        messages = list(self._reconciler.store.messages(contact_id))
        if not self._closed:
            self._events.put_nowait(ThreadEvent(contact_id=contact_id, messages=messages))
        return messages

    def _on_store_change(self, snapshot: InboxSnapshot) -> None:
        if not self._closed:
            self._events.put_nowait(SnapshotEvent(inbox=snapshot_response(snapshot)))


class InboxRegistry:
    """Live inbox sessions keyed by device id."""

    def __init__(self) -> None:
        self._sessions: dict[str, InboxSession] = {}

    def get(self, device_id: str) -> InboxSession | None:
        return self._sessions.get(device_id)

    def register(self, session: InboxSession) -> InboxSession | None:
        previous = self._sessions.get(session.device_id)
        self._sessions[session.device_id] = session
        return previous

    def unregister(self, session: InboxSession) -> None:
        if self._sessions.get(session.device_id) is session:
            del self._sessions[session.device_id]

    def __len__(self) -> int:
        return len(self._sessions)

    async def close(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            await session.close()
