from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol, Sequence

import httpx

from server.core.config import Settings
from server.features.shared.text_sanitize import strip_html

from .errors import EmailTransportError
from .types import BulkSendResult, OutgoingEmail, SendResult, SenderIdentity

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class EmailTransport(Protocol):
    async def send_email(self, email: OutgoingEmail, *, sender: SenderIdentity) -> SendResult: ...

    async def send_bulk(
        self,
        emails: Sequence[OutgoingEmail],
        *,
        sender: SenderIdentity,
    ) -> BulkSendResult: ...


def build_mail_payload(email: OutgoingEmail, *, sender: SenderIdentity) -> dict[str, Any]:
    text_body = email.text_body if email.text_body is not None else strip_html(email.html_body)
    return {
        "personalizations": [{"to": [{"email": email.to}]}],
        "from": {"email": sender.from_email, "name": sender.from_name},
        "subject": email.subject,
        "content": [
            {"type": "text/plain", "value": text_body or " "},
            {"type": "text/html", "value": email.html_body},
        ],
    }


class HttpEmailTransport:
    """Sends mail through an HTTP mail API (SendGrid v3 ``mail/send`` shape)."""

    def __init__(
        self,
        *,
        api_key: str,
        api_url: str,
        timeout: float = 30.0,
        send_delay_seconds: float = 0.1,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url
        self._timeout = timeout
        self._send_delay_seconds = send_delay_seconds
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> HttpEmailTransport:
        if not settings.email_api_key:
            logger.warning("EMAIL_API_KEY is not set; outgoing email will fail.")
        return cls(
            api_key=settings.email_api_key,
            api_url=settings.email_api_url,
            timeout=settings.email_timeout_seconds,
            send_delay_seconds=settings.email_send_delay_seconds,
            transport=transport,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, payload: dict[str, Any]) -> str | None:
        if not self._api_key:
            raise EmailTransportError("Email transport is not configured.")
        try:
            response = await self._get_client().post(self._api_url, json=payload)
        except httpx.HTTPError as exc:
            raise EmailTransportError(f"Email request failed: {exc}") from exc
        if response.status_code not in (200, 201, 202):
            raise EmailTransportError(
                f"Email provider returned {response.status_code}: {response.text[:200]}"
            )
        return response.headers.get("X-Message-Id")

    async def send_email(self, email: OutgoingEmail, *, sender: SenderIdentity) -> SendResult:
        try:
            message_id = await self._post(build_mail_payload(email, sender=sender))
        except EmailTransportError as exc:
            logger.warning("Email to %s failed: %s", email.to, exc)
            return SendResult(success=False, error=str(exc))
        logger.debug("Email sent to %s (%s).", email.to, message_id)
        return SendResult(success=True, message_id=message_id)

    async def send_bulk(
        self,
        emails: Sequence[OutgoingEmail],
        *,
        sender: SenderIdentity,
    ) -> BulkSendResult:
        """Send one message per recipient, pausing between sends to respect rate limits."""
        result = BulkSendResult()
        for index, email in enumerate(emails):
            if index and self._send_delay_seconds > 0:
                await self._sleep(self._send_delay_seconds)
            outcome = await self.send_email(email, sender=sender)
            if outcome.success:
                result.success += 1
                result.sent_to.append(email.to)
            else:
                result.failed += 1
                result.errors.append(f"{email.to}: {outcome.error}")
        logger.info("Bulk send finished: %d sent, %d failed.", result.success, result.failed)
        return result
