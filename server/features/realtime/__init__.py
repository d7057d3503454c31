from .feed import ChangeFeed, RowEvent, RowEventHandler, RowEventKind, RowFilter, Subscription

__all__ = [
    "ChangeFeed",
    "RowEvent",
    "RowEventHandler",
    "RowEventKind",
    "RowFilter",
    "Subscription",
]
