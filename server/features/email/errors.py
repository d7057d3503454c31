from __future__ import annotations

from server.features.shared.errors import DomainError, UpstreamError


class EmailDomainError(DomainError):
    """Base exception for outgoing email."""


class EmailTransportError(EmailDomainError, UpstreamError):
    """The email provider rejected a message or could not be reached."""
