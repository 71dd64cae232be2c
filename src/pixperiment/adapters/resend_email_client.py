"""Outbound email adapters."""

import logging
from dataclasses import dataclass

import httpx

from pixperiment.services.notifications import EmailClient

logger = logging.getLogger(__name__)

_RESEND_URL = "https://api.resend.com/emails"


@dataclass
class HttpxResendEmailClient(EmailClient):
    """Resend client implemented with httpx."""

    api_key: str
    sender: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, api_key: str, sender: str) -> "HttpxResendEmailClient":
        """Create a Resend client with a managed httpx session."""
        return cls(api_key=api_key, sender=sender, http_client=httpx.AsyncClient())

    async def send_email(self, to: str, subject: str, html: str) -> None:
        """Send an email using Resend's emails API."""
        response = await self.http_client.post(
            _RESEND_URL,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={"from": self.sender, "to": [to], "subject": subject, "html": html},
            timeout=10,
        )
        response.raise_for_status()

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()


@dataclass
class LoggingEmailClient(EmailClient):
    """Stand-in used when no email provider is configured."""

    async def send_email(self, to: str, subject: str, html: str) -> None:
        logger.info("Email delivery disabled; skipped %r", subject)

    async def close(self) -> None:
        return None
