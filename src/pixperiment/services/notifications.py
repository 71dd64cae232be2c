"""Upload confirmation emails."""

import html
import logging
from dataclasses import dataclass
from typing import Protocol

from pixperiment.domain.pricing import format_dollars
from pixperiment.domain.uploads import UploadRecord

logger = logging.getLogger(__name__)


class EmailClient(Protocol):
    """Interface for outbound email delivery."""

    async def send_email(self, to: str, subject: str, html: str) -> None:
        """Send a single HTML email."""


@dataclass
class ConfirmationNotifier:
    """Sends the uploader a receipt after their upload goes live."""

    email_client: EmailClient
    site_url: str

    async def upload_confirmed(self, upload: UploadRecord) -> bool:
        """Send the receipt; delivery failures are logged, not raised."""
        if upload.is_recovered:
            return False
        subject = f"Your PixPeriment upload #{upload.upload_order} is live"
        body = _render_receipt(upload, self.site_url)
        try:
            await self.email_client.send_email(upload.user_email, subject, body)
        except Exception:
            logger.exception(
                "Failed to send confirmation for session %s",
                upload.stripe_session_id,
            )
            return False
        return True


def _render_receipt(upload: UploadRecord, site_url: str) -> str:
    return (
        "<h1>Thanks for joining the experiment!</h1>"
        f"<p>Your photo is upload <strong>#{upload.upload_order}</strong>.</p>"
        f"<p>Caption: {html.escape(upload.caption)}</p>"
        f"<p>You paid <strong>${format_dollars(upload.price_paid)}</strong>. "
        f"The upload after yours costs ${format_dollars(upload.price_paid + 1)}.</p>"
        f'<p><a href="{html.escape(site_url)}">See the gallery</a></p>'
    )
