from __future__ import annotations

from server.features.shared.errors import DomainError, NotFoundError, ValidationError


class CampaignsDomainError(DomainError):
    """Base exception for campaign management and dispatch."""


class CampaignNotFoundError(CampaignsDomainError, NotFoundError):
    pass


class CampaignValidationError(CampaignsDomainError, ValidationError):
    pass
