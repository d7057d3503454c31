from __future__ import annotations

from server.features.shared.errors import DomainError, NotFoundError, ValidationError


class MetricsDomainError(DomainError):
    """Base exception for campaign metrics."""


class MetricNotFoundError(MetricsDomainError, NotFoundError):
    pass


class MetricValidationError(MetricsDomainError, ValidationError):
    pass
