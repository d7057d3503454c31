from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any

import httpx

from server.core.config import Settings

from .errors import WebhookVerificationError, WhatsAppApiError
from .types import MediaType

logger = logging.getLogger(__name__)

GRAPH_API_BASE_URL = "https://graph.facebook.com"


def _recipient(to: str) -> str:
    return to.strip().lstrip("+")


def build_text_message(to: str, body: str, *, preview_url: bool = False) -> dict[str, Any]:
    return {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": _recipient(to),
        "type": "text",
        "text": {"preview_url": preview_url, "body": body},
    }


def build_media_message(
    to: str,
    media_type: MediaType,
    *,
    link: str | None = None,
    media_id: str | None = None,
    caption: str | None = None,
    filename: str | None = None,
) -> dict[str, Any]:
    if (link is None) == (media_id is None):
        raise ValueError("Exactly one of link or media_id is required.")
    media: dict[str, Any] = {"link": link} if link is not None else {"id": media_id}
    if caption and media_type in {"image", "video", "document"}:
        media["caption"] = caption
    if filename and media_type == "document":
        media["filename"] = filename
    return {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": _recipient(to),
        "type": media_type,
        media_type: media,
    }


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return response.reason_phrase or "Unknown error"


class WhatsAppCloudClient:
    """Thin async client for the WhatsApp Cloud API (Meta Graph API)."""

    def __init__(
        self,
        *,
        access_token: str,
        phone_number_id: str,
        api_version: str = "v18.0",
        webhook_verify_token: str = "",
        app_secret: str = "",
        timeout: float = 30.0,
        base_url: str = GRAPH_API_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.phone_number_id = phone_number_id
        self.api_version = api_version
        self._access_token = access_token
        self._webhook_verify_token = webhook_verify_token
        self._app_secret = app_secret
        self._timeout = timeout
        self._base_url = f"{base_url.rstrip('/')}/{api_version}"
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> WhatsAppCloudClient:
        return cls(
            access_token=settings.whatsapp_access_token,
            phone_number_id=settings.whatsapp_phone_number_id,
            api_version=settings.whatsapp_api_version,
            webhook_verify_token=settings.whatsapp_webhook_verify_token,
            app_secret=settings.whatsapp_app_secret,
            timeout=settings.whatsapp_timeout_seconds,
            transport=transport,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={"Authorization": f"Bearer {self._access_token}"},
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if not self._access_token or not self.phone_number_id:
            raise WhatsAppApiError("WhatsApp Cloud API is not configured.")
        try:
            response = await self._get_client().request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("WhatsApp API request %s %s failed: %s", method, url, exc)
            raise WhatsAppApiError(f"WhatsApp API request failed: {exc}") from exc
        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning(
                "WhatsApp API %s %s returned %d: %s",
                method,
                url,
                response.status_code,
                message,
            )
            raise WhatsAppApiError(f"WhatsApp API error: {message}")
        return response

    async def send_message(self, payload: dict[str, Any]) -> str:
        """Send a prepared message payload and return the provider message id."""
        response = await self._request("POST", f"/{self.phone_number_id}/messages", json=payload)
        messages = response.json().get("messages") or []
        if not messages or not messages[0].get("id"):
            raise WhatsAppApiError("WhatsApp API response did not include a message id.")
        message_id = str(messages[0]["id"])
        logger.info("WhatsApp message %s sent to %s.", message_id, payload.get("to"))
        return message_id

    async def upload_media(self, data: bytes, *, filename: str, content_type: str) -> str:
        response = await self._request(
            "POST",
            f"/{self.phone_number_id}/media",
            data={"messaging_product": "whatsapp", "type": content_type},
            files={"file": (filename, data, content_type)},
        )
        media_id = response.json().get("id")
        if not media_id:
            raise WhatsAppApiError("WhatsApp API response did not include a media id.")
        return str(media_id)

    async def get_media_url(self, media_id: str) -> tuple[str, str | None]:
        """Resolve a media id to its short-lived download URL and MIME type."""
        payload = (await self._request("GET", f"/{media_id}")).json()
        url = payload.get("url")
        if not url:
            raise WhatsAppApiError(f"WhatsApp media '{media_id}' has no download URL.")
        return str(url), payload.get("mime_type")

    async def download_media(self, url: str) -> bytes:
        return (await self._request("GET", url)).content

    def verify_webhook(self, mode: str, token: str, challenge: str) -> str:
        if (
            mode == "subscribe"
            and self._webhook_verify_token
            and hmac.compare_digest(token, self._webhook_verify_token)
        ):
            return challenge
        raise WebhookVerificationError("Invalid webhook verification.")

    @property
    def signature_required(self) -> bool:
        return bool(self._app_secret)

    def verify_signature(self, payload: bytes, signature: str | None) -> bool:
        if not self._app_secret:
            return True
        if not signature:
            return False
        expected = hmac.new(self._app_secret.encode(), payload, hashlib.sha256).hexdigest()
        provided = signature.removeprefix("sha256=")
        return hmac.compare_digest(expected, provided)
