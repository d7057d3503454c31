from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Awaitable, Callable, Literal

logger = logging.getLogger(__name__)

RowEventKind = Literal["INSERT", "UPDATE"]


@dataclass(frozen=True)
class RowEvent:
    table: str
    kind: RowEventKind
    row: dict[str, Any]


@dataclass(frozen=True)
class RowFilter:
    """Column predicate: matches when any of ``columns`` equals ``value``."""

    columns: tuple[str, ...]
    value: str

    @classmethod
    def any_of(cls, columns: tuple[str, ...] | list[str], value: str) -> RowFilter:
        return cls(columns=tuple(columns), value=value)

    def matches(self, row: dict[str, Any]) -> bool:
        return any(row.get(column) == self.value for column in self.columns)


RowEventHandler = Callable[[RowEvent], Awaitable[None]]


@dataclass(eq=False)
class Subscription:
    id: int
    table: str
    handler: RowEventHandler
    row_filter: RowFilter | None
    _feed: ChangeFeed = field(repr=False)
    active: bool = True

    def accepts(self, event: RowEvent) -> bool:
        if not self.active or event.table != self.table:
            return False
        return self.row_filter is None or self.row_filter.matches(event.row)

    async def close(self) -> None:
        if not self.active:
            return
        self.active = False
        self._feed._remove(self)


class ChangeFeed:
    """In-process publish/subscribe of row-level INSERT/UPDATE events.

    Events are delivered on the publisher's event loop, to subscriptions in the
    order they were opened. A failing handler is logged and skipped; the other
    subscribers still receive the event.
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._ids = count(1)

    def subscribe(
        self,
        table: str,
        handler: RowEventHandler,
        *,
        row_filter: RowFilter | None = None,
    ) -> Subscription:
        subscription = Subscription(
            id=next(self._ids),
            table=table,
            handler=handler,
            row_filter=row_filter,
            _feed=self,
        )
        self._subscriptions.append(subscription)
        logger.debug("Opened change-feed subscription %d on %s.", subscription.id, table)
        return subscription

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, event: RowEvent) -> int:
        delivered = 0
        for subscription in list(self._subscriptions):
            if not subscription.accepts(event):
                continue
            try:
                await subscription.handler(event)
            except Exception:
                logger.exception(
                    "Change-feed handler failed for subscription %d (%s %s).",
                    subscription.id,
                    event.kind,
                    event.table,
                )
                continue
            delivered += 1
        return delivered

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            await subscription.close()

    def _remove(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass
        logger.debug("Closed change-feed subscription %d.", subscription.id)
