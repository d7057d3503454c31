from __future__ import annotations

from ..types import DocumentContent, ImageContent, MessageContent, TextContent, VideoContent

PREVIEW_MAX_LENGTH = 50
PREVIEW_ELLIPSIS = "..."

_TYPE_LABELS = {
    "image": "[Image]",
    "audio": "[Audio]",
    "video": "[Video]",
    "document": "[Document]",
    "unsupported": "[Unsupported message]",
}


def truncate_preview(text: str) -> str:
    if len(text) <= PREVIEW_MAX_LENGTH:
        return text
    return f"{text[:PREVIEW_MAX_LENGTH]}{PREVIEW_ELLIPSIS}"


def message_preview(content: MessageContent) -> str:
    """Conversation-list preview for a message body or media descriptor."""
    if isinstance(content, TextContent):
        return truncate_preview(content.body)

    label: str | None = None
    if isinstance(content, (ImageContent, VideoContent)):
        label = content.caption
    elif isinstance(content, DocumentContent):
        label = content.caption or content.filename
    if label and label.strip():
        return truncate_preview(label.strip())
    return _TYPE_LABELS.get(content.type, _TYPE_LABELS["unsupported"])
