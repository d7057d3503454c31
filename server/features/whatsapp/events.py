from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import TypeAdapter, ValidationError

from server.db.models import WhatsAppMessage

from .errors import MessageParseError
from .types import INBOUND_STATUS, MEDIA_TYPES, InboxMessage, MessageContent

MESSAGES_TABLE = "whatsapp_messages"

_content_adapter: TypeAdapter[MessageContent] = TypeAdapter(MessageContent)


def message_row(row: WhatsAppMessage) -> dict[str, Any]:
    """Plain row payload published on the change feed."""
    return {
        "id": str(row.id),
        "message_id": row.message_id,
        "from_number": row.from_number,
        "to_number": row.to_number,
        "type": row.type,
        "content": dict(row.content or {}),
        "media_url": row.media_url,
        "status": row.status,
        "created_at": row.created_at,
    }


def _content_payload(row: dict[str, Any]) -> dict[str, Any]:
    message_type = str(row.get("type") or "")
    payload = row.get("content") or {}
    if not isinstance(payload, dict):
        payload = {}

    if message_type == "text":
        text = payload.get("text") or {}
        return {"type": "text", "body": str(text.get("body") or "")}

    if message_type in MEDIA_TYPES:
        section = payload.get(message_type) or {}
        data: dict[str, Any] = {
            "type": message_type,
            "link": row.get("media_url") or section.get("link"),
        }
        if message_type in {"image", "video", "document"}:
            data["caption"] = section.get("caption")
        if message_type == "document":
            data["filename"] = section.get("filename")
        return data

    return {"type": "unsupported", "original_type": message_type or None}


def parse_message_row(row: dict[str, Any], *, business_number: str) -> InboxMessage:
    """Validate a ``whatsapp_messages`` row before it reaches the inbox."""
    try:
        from_number = str(row["from_number"])
        to_number = str(row["to_number"])
        outbound = from_number == business_number
        status = row.get("status")
        created_at = row["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return InboxMessage(
            id=str(row["id"]),
            conversation_id=to_number if outbound else from_number,
            direction="outbound" if outbound else "inbound",
            content=_content_adapter.validate_python(_content_payload(row)),
            status=None if (status == INBOUND_STATUS or not outbound) else status,
            created_at=created_at,
        )
    except (KeyError, TypeError, ValueError, ValidationError) as exc:
        raise MessageParseError(f"Unparseable WhatsApp message row: {exc}") from exc
