from __future__ import annotations

import json
from typing import TYPE_CHECKING, Literal, Union

from pydantic import BaseModel

from .types import ConversationResponse, InboxMessage, InboxSnapshotResponse

if TYPE_CHECKING:
    from .inbox.store import InboxSnapshot


class SnapshotEvent(BaseModel):
    type: Literal["snapshot"] = "snapshot"
    inbox: InboxSnapshotResponse


class ThreadEvent(BaseModel):
    type: Literal["thread"] = "thread"
    contact_id: str
    messages: list[InboxMessage]


InboxStreamEvent = Union[SnapshotEvent, ThreadEvent]


def snapshot_response(snapshot: InboxSnapshot) -> InboxSnapshotResponse:
    return InboxSnapshotResponse(
        conversations=[
            ConversationResponse(
                contact_id=item.contact_id,
                display_name=item.display_name,
                last_message_preview=item.last_message_preview,
                last_message_timestamp=item.last_message_timestamp,
                unread_count=item.unread_count,
            )
            for item in snapshot.conversations
        ],
        active_contact_id=snapshot.active_contact_id,
        loading=snapshot.loading,
        error=snapshot.error,
    )


def encode_sse(event: InboxStreamEvent) -> str:
    payload = event.model_dump(mode="json")
    event_name = payload["type"]
    return f"event: {event_name}\ndata: {json.dumps(payload, ensure_ascii=True)}\n\n"
