from __future__ import annotations

from server.features.shared.errors import DomainError, NotFoundError, ValidationError


class MediaDomainError(DomainError):
    """Base exception for stored media."""


class MediaNotFoundError(MediaDomainError, NotFoundError):
    pass


class MediaValidationError(MediaDomainError, ValidationError):
    pass
