from __future__ import annotations

from .dispatch import send_campaign
from .errors import CampaignNotFoundError, CampaignValidationError, CampaignsDomainError
from .service import create_campaign, delete_campaign, get_campaign, list_campaigns, update_campaign
from .types import CampaignCreateInput, CampaignResponse, CampaignSendResult, CampaignUpdateInput, Recipient

__all__ = [
    "CampaignCreateInput",
    "CampaignNotFoundError",
    "CampaignResponse",
    "CampaignSendResult",
    "CampaignUpdateInput",
    "CampaignValidationError",
    "CampaignsDomainError",
    "Recipient",
    "create_campaign",
    "delete_campaign",
    "get_campaign",
    "list_campaigns",
    "send_campaign",
    "update_campaign",
]
