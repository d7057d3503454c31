from __future__ import annotations

from .errors import EmailDomainError, EmailTransportError
from .templates import (
    add_unsubscribe_footer,
    build_unsubscribe_link,
    render_campaign_email,
    validate_email_content,
)
from .transport import EmailTransport, HttpEmailTransport, build_mail_payload
from .types import BulkSendResult, OutgoingEmail, SendResult, SenderIdentity

__all__ = [
    "BulkSendResult",
    "EmailDomainError",
    "EmailTransport",
    "EmailTransportError",
    "HttpEmailTransport",
    "OutgoingEmail",
    "SendResult",
    "SenderIdentity",
    "add_unsubscribe_footer",
    "build_mail_payload",
    "build_unsubscribe_link",
    "render_campaign_email",
    "validate_email_content",
]
