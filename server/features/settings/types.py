from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SenderIdentitySource = Literal["database", "environment_defaults"]

FROM_EMAIL_KEY = "FROM_EMAIL"
FROM_NAME_KEY = "FROM_NAME"


@dataclass(frozen=True)
class SenderIdentityResolved:
    from_email: str
    from_name: str
    source: SenderIdentitySource


class SenderIdentityResponse(BaseModel):
    from_email: str
    from_name: str
    source: SenderIdentitySource


class ConfigEntryCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: str = Field(min_length=1, max_length=128)
    value: str = Field(min_length=1, max_length=10_000)
    description: str | None = Field(default=None, max_length=200)


class ConfigEntryPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    value: str | None = Field(default=None, min_length=1, max_length=10_000)
    description: str | None = Field(default=None, max_length=200)


class ConfigEntryResponse(BaseModel):
    id: str
    key: str
    value: str
    description: str | None
    created_at: datetime
    updated_at: datetime
