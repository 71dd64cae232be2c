"""Payment verification and the confirmation entry points."""

import logging
from dataclasses import dataclass
from enum import StrEnum

from pixperiment.domain.errors import ValidationError
from pixperiment.domain.payments import CHECKOUT_COMPLETED, CheckoutSession
from pixperiment.domain.uploads import MaterializationResult
from pixperiment.services.materializer import UploadMaterializer
from pixperiment.services.notifications import ConfirmationNotifier
from pixperiment.services.payments import PaymentGateway

logger = logging.getLogger(__name__)


class WebhookOutcome(StrEnum):
    MATERIALIZED = "materialized"
    EXISTS = "exists"
    IGNORED = "ignored"
    UNPAID = "unpaid"


@dataclass
class PaymentVerifier:
    """Confirms with the processor that a session is paid."""

    gateway: PaymentGateway

    def fetch_session(self, session_id: str) -> CheckoutSession:
        cleaned = (session_id or "").strip()
        if not cleaned:
            raise ValidationError("Session id is required")
        return self.gateway.retrieve_session(cleaned)

    def verify_paid(self, session_id: str) -> CheckoutSession:
        """Return the session if the processor reports it paid."""
        session = self.fetch_session(session_id)
        if not session.paid:
            logger.info(
                "Session %s is not paid (status %s)", session.id, session.payment_status
            )
            raise ValidationError("Payment has not been completed")
        return session


@dataclass
class PaymentConfirmationService:
    """Single entry point shared by the webhook and the browser return path."""

    verifier: PaymentVerifier
    materializer: UploadMaterializer
    notifier: ConfirmationNotifier

    async def confirm(self, session_id: str) -> MaterializationResult:
        """Materialize a session the browser reports as completed."""
        session = self.verifier.verify_paid(session_id)
        return await self._materialize(session)

    async def handle_webhook(
        self, payload: bytes, signature: str | None
    ) -> WebhookOutcome:
        """Verify a signed processor event and act on completed checkouts."""
        event = self.verifier.gateway.parse_event(payload, signature)
        if event.type != CHECKOUT_COMPLETED or not event.session_id:
            logger.info("Ignoring processor event %s (%s)", event.id, event.type)
            return WebhookOutcome.IGNORED
        session = self.verifier.fetch_session(event.session_id)
        if not session.paid:
            logger.info(
                "Checkout %s completed without payment (status %s)",
                session.id,
                session.payment_status,
            )
            return WebhookOutcome.UNPAID
        result = await self._materialize(session)
        return WebhookOutcome.MATERIALIZED if result.created else WebhookOutcome.EXISTS

    async def _materialize(self, session: CheckoutSession) -> MaterializationResult:
        result = self.materializer.materialize(session)
        if result.created:
            await self.notifier.upload_confirmed(result.upload)
        return result
