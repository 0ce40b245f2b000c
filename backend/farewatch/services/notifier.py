"""Email notifier — delivers fare alerts through SendGrid or Mailgun."""

import logging
import time
from dataclasses import dataclass

import httpx

from farewatch.exceptions import NotificationDeliveryError

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
MAILGUN_URL = "https://api.mailgun.net/v3/{domain}/messages"


@dataclass
class NotificationResult:
    delivered: bool
    message_id: str
    provider_name: str


class EmailNotifier:
    """
    Sends one email per call through whichever provider is configured.

    SendGrid wins when both are configured. With neither configured the
    notifier is disabled: ``send`` returns ``delivered=False`` without any
    network call. Provider failures raise ``NotificationDeliveryError``.
    """

    def __init__(
        self,
        sendgrid_api_key: str = "",
        mailgun_api_key: str = "",
        mailgun_domain: str = "",
        from_email: str = "alerts@farewatch.app",
        from_name: str = "FareWatch",
        timeout: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._sendgrid_api_key = sendgrid_api_key
        self._mailgun_api_key = mailgun_api_key
        self._mailgun_domain = mailgun_domain
        self.from_email = from_email
        self.from_name = from_name
        self._timeout = timeout
        self._client = http_client

    @property
    def provider_name(self) -> str:
        if self._sendgrid_api_key:
            return "sendgrid"
        if self._mailgun_api_key and self._mailgun_domain:
            return "mailgun"
        return "disabled"

    @property
    def enabled(self) -> bool:
        return self.provider_name != "disabled"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def send(self, to: str, subject: str, html: str, text: str) -> NotificationResult:
        if not to or not subject or not (html or text):
            raise NotificationDeliveryError("Email payload missing to, subject, or body")

        provider = self.provider_name
        if provider == "disabled":
            logger.info("Email disabled: no provider configured (SENDGRID_API_KEY or MAILGUN_API_KEY+MAILGUN_DOMAIN)")
            return NotificationResult(
                delivered=False,
                message_id=f"disabled_{int(time.time() * 1000)}",
                provider_name="disabled",
            )

        try:
            if provider == "sendgrid":
                message_id = await self._send_sendgrid(to, subject, html, text)
            else:
                message_id = await self._send_mailgun(to, subject, html, text)
        except httpx.RequestError as e:
            logger.error(f"Failed to send email via {provider}: {e}")
            raise NotificationDeliveryError(f"{provider} request failed: {e}") from e

        logger.info(f"Email sent via {provider} to {to}, messageId: {message_id}")
        return NotificationResult(delivered=True, message_id=message_id, provider_name=provider)

    async def _send_sendgrid(self, to: str, subject: str, html: str, text: str) -> str:
        client = await self._get_client()
        content = []
        if text:
            content.append({"type": "text/plain", "value": text})
        if html:
            content.append({"type": "text/html", "value": html})

        resp = await client.post(
            SENDGRID_URL,
            json={
                "personalizations": [{"to": [{"email": to}]}],
                "from": {"email": self.from_email, "name": self.from_name},
                "subject": subject,
                "content": content,
            },
            headers={"Authorization": f"Bearer {self._sendgrid_api_key}"},
        )
        if resp.status_code >= 400:
            raise NotificationDeliveryError(
                f"SendGrid API error: {resp.status_code}. {resp.text[:300]}"
            )
        return resp.headers.get("x-message-id") or f"sendgrid_{int(time.time() * 1000)}"

    async def _send_mailgun(self, to: str, subject: str, html: str, text: str) -> str:
        client = await self._get_client()
        resp = await client.post(
            MAILGUN_URL.format(domain=self._mailgun_domain),
            data={
                "from": f"{self.from_name} <{self.from_email}>",
                "to": to,
                "subject": subject,
                "text": text,
                "html": html,
            },
            auth=("api", self._mailgun_api_key),
        )
        if resp.status_code >= 400:
            raise NotificationDeliveryError(
                f"Mailgun API error: {resp.status_code}. Body: {resp.text[:300]}"
            )
        try:
            message_id = resp.json().get("id")
        except ValueError:
            message_id = None
        return message_id or f"mailgun_{int(time.time() * 1000)}"

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None
