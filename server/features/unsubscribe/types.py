from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from pydantic import BaseModel

UnsubscribeStatus = Literal["unsubscribed", "already-unsubscribed"]

UNSUBSCRIBE_REASON = "user_request"


@dataclass(frozen=True)
class UnsubscribeOutcome:
    status: UnsubscribeStatus
    email: str
    campaign_name: str | None = None
    skipped_steps: tuple[str, ...] = field(default=())


class UnsubscribeResponse(BaseModel):
    success: bool = True
    status: UnsubscribeStatus
    email: str
    campaign_name: str | None = None


class UnsubscribeErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str | None = None


class UnsubscribeLogResponse(BaseModel):
    id: str
    contact_id: str | None
    campaign_id: str | None
    email: str
    reason: str
    unsubscribed_at: datetime
