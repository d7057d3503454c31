from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from server.features.groups.types import GroupSummary

ContactStatus = Literal["active", "unsubscribed", "bounced"]

MAX_NAME_LENGTH = 50
MAX_IMPORT_SIZE = 5_000


class ContactCreateInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    first_name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    last_name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    phone: str | None = Field(default=None, max_length=32)
    status: ContactStatus = "active"
    group_ids: list[str] = Field(default_factory=list)


class ContactUpdateInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr | None = None
    first_name: str | None = Field(default=None, min_length=1, max_length=MAX_NAME_LENGTH)
    last_name: str | None = Field(default=None, min_length=1, max_length=MAX_NAME_LENGTH)
    phone: str | None = Field(default=None, max_length=32)
    status: ContactStatus | None = None
    group_ids: list[str] | None = None


class ContactImportInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    contacts: list[ContactCreateInput] = Field(min_length=1, max_length=MAX_IMPORT_SIZE)


class ContactResponse(BaseModel):
    id: str
    email: str
    first_name: str | None
    last_name: str | None
    phone: str | None
    status: ContactStatus
    groups: list[GroupSummary]
    created_at: datetime
    updated_at: datetime


class ContactImportResult(BaseModel):
    created: int
    skipped: int
    errors: list[str]
