from fastapi import APIRouter

from server.features.campaigns.api import router as campaigns_router
from server.features.contacts.api import router as contacts_router
from server.features.groups.api import router as groups_router
from server.features.media.api import router as media_router
from server.features.metrics.api import router as metrics_router
from server.features.settings.api import router as settings_router
from server.features.unsubscribe.api import router as unsubscribe_router
from server.features.whatsapp.api import router as whatsapp_router
from server.features.whatsapp.api import webhook_router as whatsapp_webhook_router

api_router = APIRouter()
api_router.include_router(campaigns_router)
api_router.include_router(contacts_router)
api_router.include_router(groups_router)
api_router.include_router(media_router)
api_router.include_router(metrics_router)
api_router.include_router(settings_router)
api_router.include_router(unsubscribe_router)
api_router.include_router(whatsapp_webhook_router)
api_router.include_router(whatsapp_router)
