from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from server.db.models import EmailMetric
from server.features.campaigns import repo as campaigns_repo
from server.features.shared.ids import to_uuid

from . import repo
from .errors import MetricValidationError
from .types import (
    CampaignMetricsResponse,
    DashboardMetricsResponse,
    EmailMetricResponse,
    MetricEvent,
)

_EVENT_COLUMNS: dict[str, str] = {
    "opened": "opened_at",
    "clicked": "clicked_at",
    "bounced": "bounced_at",
}


def _parse_id(value: UUID | str, *, field_name: str) -> UUID:
    try:
        return to_uuid(value)
    except ValueError as exc:
        raise MetricValidationError(f"Invalid {field_name}.") from exc


def rate(part: int, total: int) -> float:
    """Percentage of ``total``; 0 when nothing was sent."""
    if total <= 0:
        return 0.0
    return part / total * 100


async def get_campaign_metrics(
    session: AsyncSession,
    *,
    user_id: UUID,
    campaign_id: UUID | str,
) -> CampaignMetricsResponse:
    parsed_id = _parse_id(campaign_id, field_name="campaign_id")
    await campaigns_repo.get_campaign(session, user_id=user_id, campaign_id=parsed_id)
    counts = await repo.count_campaign_metrics(session, user_id=user_id, campaign_id=parsed_id)
    return CampaignMetricsResponse(
        campaign_id=str(parsed_id),
        sent=counts.sent,
        opened=counts.opened,
        clicked=counts.clicked,
        bounced=counts.bounced,
        unsubscribed=counts.unsubscribed,
        open_rate=rate(counts.opened, counts.sent),
        click_rate=rate(counts.clicked, counts.sent),
        bounce_rate=rate(counts.bounced, counts.sent),
    )


async def get_dashboard_metrics(session: AsyncSession, *, user_id: UUID) -> DashboardMetricsResponse:
    campaigns, contacts, groups = await repo.count_rows(session, user_id=user_id)
    counts = await repo.count_user_metrics(session, user_id=user_id)
    return DashboardMetricsResponse(
        total_campaigns=campaigns,
        total_contacts=contacts,
        total_groups=groups,
        total_sent=counts.sent,
        total_opened=counts.opened,
        total_clicked=counts.clicked,
        total_bounced=counts.bounced,
        open_rate=rate(counts.opened, counts.sent),
        click_rate=rate(counts.clicked, counts.sent),
        bounce_rate=rate(counts.bounced, counts.sent),
    )


def _to_response(row: EmailMetric) -> EmailMetricResponse:
    return EmailMetricResponse(
        id=str(row.id),
        campaign_id=str(row.campaign_id),
        contact_id=str(row.contact_id),
        sent_at=row.sent_at,
        opened_at=row.opened_at,
        clicked_at=row.clicked_at,
        bounced_at=row.bounced_at,
        unsubscribed_at=row.unsubscribed_at,
    )


async def record_metric_event(
    session: AsyncSession,
    *,
    user_id: UUID,
    metric_id: UUID | str,
    event: MetricEvent,
    occurred_at: datetime | None = None,
) -> EmailMetricResponse:
    """Stamp an engagement event; the first stamp for each event wins."""
    column = _EVENT_COLUMNS.get(event)
    if column is None:
        raise MetricValidationError(f"Unknown metric event '{event}'.")
    row = await repo.get_metric(
        session,
        user_id=user_id,
        metric_id=_parse_id(metric_id, field_name="metric_id"),
    )
    if getattr(row, column) is None:
        setattr(row, column, occurred_at or datetime.now(timezone.utc))
        row = await repo.save_metric(session, row=row)
    return _to_response(row)
