from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Request

if TYPE_CHECKING:
    from server.features.email.transport import EmailTransport
    from server.features.media.storage import LocalObjectStorage
    from server.features.realtime import ChangeFeed
    from server.features.whatsapp.client import WhatsAppCloudClient
    from server.features.whatsapp.inbox import InboxRegistry

# Long-lived collaborators are built once in the application lifespan and kept on
# ``app.state``; tests swap them through ``app.dependency_overrides``.


def get_change_feed(request: Request) -> ChangeFeed:
    return request.app.state.change_feed


def get_whatsapp_client(request: Request) -> WhatsAppCloudClient:
    return request.app.state.whatsapp_client


def get_email_transport(request: Request) -> EmailTransport:
    return request.app.state.email_transport


def get_object_storage(request: Request) -> LocalObjectStorage:
    return request.app.state.object_storage


def get_inbox_registry(request: Request) -> InboxRegistry:
    return request.app.state.inbox_registry
