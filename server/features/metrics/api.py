from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from server.db.session import get_db_session
from server.features.campaigns.errors import CampaignNotFoundError
from server.features.shared.auth import get_current_user_id
from server.features.unsubscribe.service import list_unsubscribe_logs
from server.features.unsubscribe.types import UnsubscribeLogResponse

from .errors import MetricNotFoundError, MetricValidationError
from .service import get_campaign_metrics, get_dashboard_metrics, record_metric_event
from .types import CampaignMetricsResponse, DashboardMetricsResponse, EmailMetricResponse, MetricEventInput

router = APIRouter(prefix="/api/metrics", tags=["metrics"])


def _raise_http_error(exc: Exception) -> None:
    if isinstance(exc, (MetricNotFoundError, CampaignNotFoundError)):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, MetricValidationError):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    raise exc


@router.get("/dashboard", response_model=DashboardMetricsResponse)
async def get_dashboard(
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> DashboardMetricsResponse:
    return await get_dashboard_metrics(session, user_id=user_id)


@router.get("/unsubscribes", response_model=list[UnsubscribeLogResponse])
async def get_unsubscribes(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> list[UnsubscribeLogResponse]:
    return await list_unsubscribe_logs(session, user_id=user_id, limit=limit, offset=offset)


@router.get("/campaigns/{campaign_id}", response_model=CampaignMetricsResponse)
async def get_campaign_metrics_by_id(
    campaign_id: str,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> CampaignMetricsResponse:
    try:
        return await get_campaign_metrics(session, user_id=user_id, campaign_id=campaign_id)
    except Exception as exc:
        _raise_http_error(exc)


@router.post("/{metric_id}/events", response_model=EmailMetricResponse)
async def post_metric_event(
    metric_id: str,
    payload: MetricEventInput,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> EmailMetricResponse:
    try:
        return await record_metric_event(
            session,
            user_id=user_id,
            metric_id=metric_id,
            event=payload.event,
            occurred_at=payload.occurred_at,
        )
    except Exception as exc:
        _raise_http_error(exc)
