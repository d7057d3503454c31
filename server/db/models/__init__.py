from .campaigns import Campaign, CampaignGroup, EmailMetric, UnsubscribeLog
from .contacts import Contact, ContactGroup, Group
from .settings import ConfigEntry
from .whatsapp import WhatsAppContact, WhatsAppMessage

__all__ = [
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
