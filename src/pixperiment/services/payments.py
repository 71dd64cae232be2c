"""Checkout session creation for new uploads."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from pixperiment.domain.errors import PaymentInitiationError
from pixperiment.domain.payments import (
    CheckoutLink,
    CheckoutRequest,
    CheckoutSession,
    PaymentEvent,
)
from pixperiment.domain.pricing import format_dollars
from pixperiment.domain.uploads import ImageFile
from pixperiment.services.pricing import PricingService
from pixperiment.services.uploads import PendingUploadRepository
from pixperiment.services.validation import (
    MAX_CAPTION_LENGTH,
    MAX_IMAGE_BYTES,
    decode_image,
    validate_caption,
    validate_email,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class PaymentGateway(Protocol):
    """Interface for the payment processor."""

    def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        """Open a hosted checkout session."""

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        """Return the processor's current view of a session."""

    def list_completed_sessions(self, since: datetime) -> list[CheckoutSession]:
        """Return sessions completed after `since`."""

    def parse_event(self, payload: bytes, signature: str | None) -> PaymentEvent:
        """Verify a signed webhook body and return its event."""


@dataclass
class PaymentInitiator:
    """Validates an upload request and opens a checkout session for it."""

    pending_repository: PendingUploadRepository
    gateway: PaymentGateway
    pricing_service: PricingService
    site_url: str
    currency: str = "usd"
    product_name: str = "PixPeriment Upload"
    checkout_expiry_minutes: int = 30
    max_image_bytes: int = MAX_IMAGE_BYTES
    max_caption_length: int = MAX_CAPTION_LENGTH
    clock: Callable[[], datetime] = field(default=_utcnow)

    def initiate(self, email: str, caption: str, image: ImageFile) -> CheckoutLink:
        """Persist the payload and return the checkout redirect."""
        clean_email = validate_email(email)
        clean_caption = validate_caption(caption, self.max_caption_length)
        decode_image(image, self.max_image_bytes)

        state = self.pricing_service.get_state()
        price = state.next_price
        pending = self.pending_repository.create(
            email=clean_email,
            caption=clean_caption,
            image_data=image.data,
            image_name=image.name,
            image_type=image.type,
            quoted_price=price,
        )
        request = CheckoutRequest(
            price_cents=price,
            currency=self.currency,
            product_name=self.product_name,
            description=f"Upload #{state.next_order}: {clean_caption[:100]}",
            customer_email=clean_email,
            success_url=(
                f"{self.site_url}/success?session_id={{CHECKOUT_SESSION_ID}}"
            ),
            cancel_url=f"{self.site_url}?cancelled=true",
            expires_at=self.clock()
            + timedelta(minutes=self.checkout_expiry_minutes),
            metadata={
                "pending_upload_id": str(pending.id),
                "price_quoted": str(price),
                "expected_order": str(state.next_order),
                "email": clean_email,
                "caption": clean_caption[:200],
            },
        )
        session = self.gateway.create_checkout_session(request)
        if not session.url:
            raise PaymentInitiationError("Checkout session has no redirect URL")
        self.pending_repository.attach_session(pending.id, session.id)
        logger.info(
            "Opened checkout session %s at $%s",
            session.id,
            format_dollars(price),
            extra={"pending_upload_id": str(pending.id)},
        )
        return CheckoutLink(url=session.url, price=price, session_id=session.id)
