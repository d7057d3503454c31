from __future__ import annotations

from .errors import (
    UnsubscribeDomainError,
    UnsubscribeFailedError,
    UnsubscribeNotFoundError,
    UnsubscribeValidationError,
)
from .service import list_unsubscribe_logs, parse_link_ids, unsubscribe
from .types import UnsubscribeLogResponse, UnsubscribeOutcome, UnsubscribeResponse

__all__ = [
    "UnsubscribeDomainError",
    "UnsubscribeFailedError",
    "UnsubscribeLogResponse",
    "UnsubscribeNotFoundError",
    "UnsubscribeOutcome",
    "UnsubscribeResponse",
    "UnsubscribeValidationError",
    "list_unsubscribe_logs",
    "parse_link_ids",
    "unsubscribe",
]
