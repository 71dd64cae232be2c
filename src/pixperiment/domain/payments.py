"""Domain models for checkout sessions and processor events."""

from dataclasses import dataclass, field
from datetime import datetime

CHECKOUT_COMPLETED = "checkout.session.completed"


@dataclass(frozen=True)
class CheckoutRequest:
    """Parameters for a single-item checkout session."""

    price_cents: int
    currency: str
    product_name: str
    description: str
    customer_email: str
    success_url: str
    cancel_url: str
    expires_at: datetime
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CheckoutSession:
    """Processor-side view of a checkout session."""

    id: str
    payment_status: str
    status: str | None = None
    url: str | None = None
    amount_total: int | None = None
    customer_email: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    created_at: datetime | None = None

    @property
    def paid(self) -> bool:
        return self.payment_status == "paid"

    @property
    def pending_upload_id(self) -> str | None:
        return self.metadata.get("pending_upload_id")

    @property
    def contact_email(self) -> str | None:
        return self.customer_email or self.metadata.get("email")


@dataclass(frozen=True)
class PaymentEvent:
    """A verified processor event."""

    id: str
    type: str
    session_id: str | None


@dataclass(frozen=True)
class CheckoutLink:
    """Redirect target handed back to the browser."""

    url: str
    price: int
    session_id: str
