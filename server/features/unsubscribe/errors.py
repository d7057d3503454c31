from __future__ import annotations

from server.features.shared.errors import DomainError, NotFoundError, ValidationError


class UnsubscribeDomainError(DomainError):
    """Base exception for the public unsubscribe flow."""


class UnsubscribeValidationError(UnsubscribeDomainError, ValidationError):
    pass


class UnsubscribeNotFoundError(UnsubscribeDomainError, NotFoundError):
    pass


class UnsubscribeFailedError(UnsubscribeDomainError):
    """The contact status could not be changed; nothing else was attempted."""
