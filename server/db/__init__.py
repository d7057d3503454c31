from .base import Base
from .models import (
    Campaign,
    CampaignGroup,
    ConfigEntry,
    Contact,
    ContactGroup,
    EmailMetric,
    Group,
    UnsubscribeLog,
    WhatsAppContact,
    WhatsAppMessage,
)

__all__ = [
    "Base",
    "Campaign",
    "CampaignGroup",
    "ConfigEntry",
    "Contact",
    "ContactGroup",
    "EmailMetric",
    "Group",
    "UnsubscribeLog",
    "WhatsAppContact",
    "WhatsAppMessage",
]
