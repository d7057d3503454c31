import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import api_router
from .core.config import get_settings
from .core.logging import configure_logging
from .db.session import DATABASE_URL, async_engine
from .db.utils import redact_database_url
from .features.email.transport import HttpEmailTransport
from .features.media.storage import LocalObjectStorage
from .features.realtime import ChangeFeed
from .features.whatsapp.client import WhatsAppCloudClient
from .features.whatsapp.inbox import InboxRegistry

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    app.state.change_feed = ChangeFeed()
    app.state.whatsapp_client = WhatsAppCloudClient.from_settings(settings)
    app.state.email_transport = HttpEmailTransport.from_settings(settings)
    app.state.object_storage = LocalObjectStorage.from_settings(settings)
    app.state.inbox_registry = InboxRegistry()
    logger.info(
        "Console API started (%s) against %s.",
        settings.environment,
        redact_database_url(DATABASE_URL),
    )
    try:
        yield
    finally:
        await app.state.inbox_registry.close()
        await app.state.change_feed.close()
        await app.state.whatsapp_client.close()
        await app.state.email_transport.close()
        await async_engine.dispose()


app = FastAPI(title="Marketing Console API", docs_url="/api/docs", lifespan=lifespan)
app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.frontend_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def read_root() -> dict:
    return {"status": "ok", "service": "marketing-console"}


@app.get("/health")
async def health_check() -> dict:
    return {"healthy": True}
