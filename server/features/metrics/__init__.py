from __future__ import annotations

from .errors import MetricNotFoundError, MetricValidationError, MetricsDomainError
from .service import get_campaign_metrics, get_dashboard_metrics, rate, record_metric_event
from .types import (
    CampaignMetricsResponse,
    DashboardMetricsResponse,
    EmailMetricResponse,
    MetricCounts,
    MetricEventInput,
)

__all__ = [
    "CampaignMetricsResponse",
    "DashboardMetricsResponse",
    "EmailMetricResponse",
    "MetricCounts",
    "MetricEventInput",
    "MetricNotFoundError",
    "MetricValidationError",
    "MetricsDomainError",
    "get_campaign_metrics",
    "get_dashboard_metrics",
    "rate",
    "record_metric_event",
]
