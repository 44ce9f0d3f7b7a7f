"""Outbound mail channels.

- ``SMTPNotifier`` pushes notifications into the administrator mailbox.
- ``ResendClient`` sends administrator replies to visitors through the
  Resend transactional API.

Neither retries: one failed attempt raises ``RelayError`` and is final.
"""
import logging
from email.message import EmailMessage

import aiosmtplib
import httpx

from mailrouter.config import Settings
from mailrouter.errors import RelayError
from mailrouter.services.composer import ResendEmail

logger = logging.getLogger(__name__)


class SMTPNotifier:
    """Delivers notification messages over SMTP."""

    def __init__(
        self,
        hostname: str,
        port: int,
        username: str | None = None,
        password: str | None = None,
        start_tls: bool = False,
        timeout: float | None = None,
    ):
        self.hostname = hostname
        self.port = port
        self.username = username or None
        self.password = password or None
        self.start_tls = start_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SMTPNotifier":
        return cls(
            hostname=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            start_tls=settings.SMTP_STARTTLS,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    async def send(self, message: EmailMessage) -> None:
        try:
            await aiosmtplib.send(
                message,
                hostname=self.hostname,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=self.start_tls,
                timeout=self.timeout,
            )
        except aiosmtplib.SMTPException as e:
            raise RelayError(f"SMTP delivery to {message['To']} failed: {e}") from e
        logger.info("Notification delivered to %s", message["To"])


class ResendClient:
    """Asynchronous Resend API client."""

    def __init__(self, api_key: str, http_client: httpx.AsyncClient, api_url: str):
        """Initialize with credentials and a shared HTTP client."""
        self.api_key = api_key
        self.api_url = api_url
        self._client = http_client

    async def send(self, email: ResendEmail) -> None:
        """Send one email; raises RelayError on any failure."""
        try:
            response = await self._client.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=email.to_payload(),
            )
        except httpx.HTTPError as e:
            raise RelayError(f"Resend request failed: {e}") from e

        if response.is_error:
            raise RelayError(f"Resend rejected the email ({response.status_code}): {response.text}")
