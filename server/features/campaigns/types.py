from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from server.features.groups.types import GroupSummary

CampaignStatus = Literal["draft", "sent", "scheduled", "paused"]

MAX_NAME_LENGTH = 100
MAX_SUBJECT_LENGTH = 200


@dataclass(frozen=True)
class Recipient:
    contact_id: UUID
    email: str


class CampaignCreateInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    subject: str = Field(min_length=1, max_length=MAX_SUBJECT_LENGTH)
    content: str = Field(min_length=1)
    status: CampaignStatus = "draft"
    scheduled_at: datetime | None = None
    group_ids: list[str] = Field(min_length=1)


class CampaignUpdateInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=MAX_NAME_LENGTH)
    subject: str | None = Field(default=None, min_length=1, max_length=MAX_SUBJECT_LENGTH)
    content: str | None = Field(default=None, min_length=1)
    status: CampaignStatus | None = None
    scheduled_at: datetime | None = None
    group_ids: list[str] | None = Field(default=None, min_length=1)


class CampaignResponse(BaseModel):
    id: str
    name: str
    subject: str
    content: str
    status: CampaignStatus
    scheduled_at: datetime | None
    sent_at: datetime | None
    groups: list[GroupSummary]
    created_at: datetime
    updated_at: datetime


class CampaignSendResult(BaseModel):
    total_sent: int
    total_failed: int
    errors: list[str]
