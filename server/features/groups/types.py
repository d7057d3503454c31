from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500


@dataclass(frozen=True)
class GroupWithCount:
    id: UUID
    name: str
    description: str | None
    contact_count: int
    created_at: datetime
    updated_at: datetime


class GroupCreateInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)


class GroupUpdateInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=MAX_NAME_LENGTH)
    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)


class GroupSummary(BaseModel):
    id: str
    name: str


class GroupResponse(BaseModel):
    id: str
    name: str
    description: str | None
    contact_count: int
    created_at: datetime
    updated_at: datetime


class GroupMembershipResponse(BaseModel):
    group_id: str
    contact_id: str
    member: bool
