from __future__ import annotations

from .client import WhatsAppCloudClient, build_media_message, build_text_message
from .errors import (
    InboxSyncError,
    MessageParseError,
    WebhookVerificationError,
    WhatsAppApiError,
    WhatsAppDomainError,
    WhatsAppValidationError,
)
from .events import MESSAGES_TABLE, message_row, parse_message_row
from .service import (
    close_conversation,
    get_inbox_snapshot,
    list_thread,
    open_conversation,
    send_media_upload,
    send_message,
    start_inbox_session,
)
from .types import InboxMessage, SendMediaLinkInput, SendTextInput, SentMessageResponse
from .webhook import WebhookResult, next_status, process_webhook

__all__ = [
    "InboxMessage",
    "InboxSyncError",
    "MESSAGES_TABLE",
    "MessageParseError",
    "SendMediaLinkInput",
    "SendTextInput",
    "SentMessageResponse",
    "WebhookResult",
    "WebhookVerificationError",
    "WhatsAppApiError",
    "WhatsAppCloudClient",
    "WhatsAppDomainError",
    "WhatsAppValidationError",
    "build_media_message",
    "build_text_message",
    "close_conversation",
    "get_inbox_snapshot",
    "list_thread",
    "message_row",
    "next_status",
    "open_conversation",
    "parse_message_row",
    "process_webhook",
    "send_media_upload",
    "send_message",
    "start_inbox_session",
]
