from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from pydantic import BaseModel

MetricEvent = Literal["opened", "clicked", "bounced"]


@dataclass(frozen=True)
class MetricCounts:
    sent: int = 0
    opened: int = 0
    clicked: int = 0
    bounced: int = 0
    unsubscribed: int = 0


class CampaignMetricsResponse(BaseModel):
    campaign_id: str
    sent: int
    opened: int
    clicked: int
    bounced: int
    unsubscribed: int
    open_rate: float
    click_rate: float
    bounce_rate: float


class DashboardMetricsResponse(BaseModel):
    total_campaigns: int
    total_contacts: int
    total_groups: int
    total_sent: int
    total_opened: int
    total_clicked: int
    total_bounced: int
    open_rate: float
    click_rate: float
    bounce_rate: float


class MetricEventInput(BaseModel):
    event: MetricEvent
    occurred_at: datetime | None = None


class EmailMetricResponse(BaseModel):
    id: str
    campaign_id: str
    contact_id: str
    sent_at: datetime
    opened_at: datetime | None
    clicked_at: datetime | None
    bounced_at: datetime | None
    unsubscribed_at: datetime | None
