from __future__ import annotations

from server.features.shared.errors import DomainError, NotFoundError, ValidationError


class GroupsDomainError(DomainError):
    """Base exception for contact groups."""


class GroupNotFoundError(GroupsDomainError, NotFoundError):
    pass


class GroupValidationError(GroupsDomainError, ValidationError):
    pass
