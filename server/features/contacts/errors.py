from __future__ import annotations

from server.features.shared.errors import ConflictError, DomainError, NotFoundError, ValidationError


class ContactsDomainError(DomainError):
    """Base exception for contact management."""


class ContactNotFoundError(ContactsDomainError, NotFoundError):
    pass


class ContactValidationError(ContactsDomainError, ValidationError):
    pass


class ContactConflictError(ContactsDomainError, ConflictError):
    pass
