from __future__ import annotations

from server.features.shared.errors import DomainError, UpstreamError, ValidationError


class WhatsAppDomainError(DomainError):
    """Base exception for WhatsApp messaging operations."""


class WhatsAppValidationError(WhatsAppDomainError, ValidationError):
    pass


class WhatsAppApiError(WhatsAppDomainError, UpstreamError):
    """The WhatsApp Cloud API rejected a request or could not be reached."""


class WebhookVerificationError(WhatsAppDomainError):
    pass


class MessageParseError(WhatsAppDomainError):
    """A change-feed row could not be turned into an inbox message."""


class InboxSyncError(WhatsAppDomainError):
    """The initial bulk read of the inbox failed."""
