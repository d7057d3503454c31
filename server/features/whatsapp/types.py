from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

MessageDirection = Literal["inbound", "outbound"]
MessageStatus = Literal["pending", "sent", "delivered", "read", "failed"]
StoredMessageStatus = Literal["pending", "sent", "delivered", "read", "failed", "received"]
MediaType = Literal["image", "audio", "video", "document"]

INBOUND_STATUS = "received"
MEDIA_TYPES: tuple[MediaType, ...] = ("image", "audio", "video", "document")


class TextContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    body: str


class ImageContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["image"] = "image"
    link: str | None = None
    caption: str | None = None


class AudioContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["audio"] = "audio"
    link: str | None = None


class VideoContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["video"] = "video"
    link: str | None = None
    caption: str | None = None


class DocumentContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["document"] = "document"
    link: str | None = None
    caption: str | None = None
    filename: str | None = None


class UnsupportedContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["unsupported"] = "unsupported"
    original_type: str | None = None


MessageContent = Annotated[
    Union[
        TextContent,
        ImageContent,
        AudioContent,
        VideoContent,
        DocumentContent,
        UnsupportedContent,
    ],
    Field(discriminator="type"),
]


class InboxMessage(BaseModel):
    """A WhatsApp message as the inbox sees it, parsed from a stored row."""

    model_config = ConfigDict(frozen=True)

    id: str
    conversation_id: str
    direction: MessageDirection
    content: MessageContent
    status: MessageStatus | None = None
    created_at: datetime

    @model_validator(mode="after")
    def _inbound_has_no_status(self) -> InboxMessage:
        if self.direction == "inbound" and self.status is not None:
            raise ValueError("Inbound messages do not carry a delivery status.")
        return self

    @property
    def type(self) -> str:
        return self.content.type


class ConversationResponse(BaseModel):
    contact_id: str
    display_name: str | None
    last_message_preview: str
    last_message_timestamp: datetime | None
    unread_count: int


class InboxSnapshotResponse(BaseModel):
    conversations: list[ConversationResponse]
    active_contact_id: str | None
    loading: bool
    error: str | None


class ThreadResponse(BaseModel):
    contact_id: str
    messages: list[InboxMessage]


class ConversationClosedResponse(BaseModel):
    device_id: str
    closed: bool


class SendTextInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["text"] = "text"
    body: str = Field(min_length=1, max_length=4096)
    preview_url: bool = False


class SendMediaLinkInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: MediaType
    link: str = Field(min_length=1)
    caption: str | None = Field(default=None, max_length=1024)
    filename: str | None = Field(default=None, max_length=255)


SendMessageInput = Annotated[
    Union[SendTextInput, SendMediaLinkInput],
    Field(discriminator="type"),
]


class SentMessageResponse(BaseModel):
    message: InboxMessage
    provider_message_id: str | None


class WebhookAck(BaseModel):
    status: Literal["ok"] = "ok"
