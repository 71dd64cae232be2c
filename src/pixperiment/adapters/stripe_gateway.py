"""Stripe Checkout adapter."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import stripe

from pixperiment.domain.errors import (
    InvalidSignatureError,
    PaymentInitiationError,
    UpstreamVerificationError,
)
from pixperiment.domain.payments import CheckoutRequest, CheckoutSession, PaymentEvent
from pixperiment.services.payments import PaymentGateway

logger = logging.getLogger(__name__)

_PAGE_SIZE = 100


@dataclass
class StripeGateway(PaymentGateway):
    """Payment gateway implemented with the Stripe SDK.

    The API key is passed per request so the module-level `stripe.api_key`
    stays untouched.
    """

    api_key: str
    webhook_secret: str

    def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        """Create a one-item card checkout session."""
        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": request.currency,
                            "product_data": {
                                "name": request.product_name,
                                "description": request.description,
                            },
                            "unit_amount": request.price_cents,
                        },
                        "quantity": 1,
                    }
                ],
                customer_email=request.customer_email,
                success_url=request.success_url,
                cancel_url=request.cancel_url,
                expires_at=int(request.expires_at.timestamp()),
                metadata=request.metadata,
            )
        except stripe.StripeError as exc:
            logger.exception(
                "Stripe rejected checkout creation",
                extra={"pending_upload_id": request.metadata.get("pending_upload_id")},
            )
            raise PaymentInitiationError("Could not start checkout") from exc
        return _to_checkout_session(session)

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        """Fetch a checkout session by id."""
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            logger.exception("Stripe lookup failed for session %s", session_id)
            raise UpstreamVerificationError(
                "Could not verify payment", session_id=session_id
            ) from exc
        return _to_checkout_session(session)

    def list_completed_sessions(self, since: datetime) -> list[CheckoutSession]:
        """Page through completed sessions created after `since`."""
        sessions: list[CheckoutSession] = []
        params: dict[str, Any] = {
            "api_key": self.api_key,
            "status": "complete",
            "created": {"gte": int(since.timestamp())},
            "limit": _PAGE_SIZE,
        }
        while True:
            try:
                page = stripe.checkout.Session.list(**params)
            except stripe.StripeError as exc:
                logger.exception("Stripe session listing failed")
                raise UpstreamVerificationError("Could not list sessions") from exc
            batch = [_to_checkout_session(item) for item in page.data]
            sessions.extend(batch)
            if not page.has_more or not batch:
                return sessions
            params["starting_after"] = batch[-1].id

    def parse_event(self, payload: bytes, signature: str | None) -> PaymentEvent:
        """Verify the Stripe-Signature header and decode the event."""
        if not signature:
            raise InvalidSignatureError("Missing webhook signature")
        try:
            event = stripe.Webhook.construct_event(
                payload=payload,
                sig_header=signature,
                secret=self.webhook_secret,
            )
        except stripe.SignatureVerificationError as exc:
            logger.warning("Rejected webhook with invalid signature")
            raise InvalidSignatureError("Invalid webhook signature") from exc
        except ValueError as exc:
            raise InvalidSignatureError("Malformed webhook payload") from exc
        data_object = event.data.object
        session_id = getattr(data_object, "id", None)
        return PaymentEvent(id=event.id, type=event.type, session_id=session_id)


def _to_checkout_session(session: Any) -> CheckoutSession:
    metadata = getattr(session, "metadata", None) or {}
    details = getattr(session, "customer_details", None)
    created = getattr(session, "created", None)
    return CheckoutSession(
        id=session.id,
        payment_status=getattr(session, "payment_status", None) or "unpaid",
        status=getattr(session, "status", None),
        url=getattr(session, "url", None),
        amount_total=getattr(session, "amount_total", None),
        customer_email=getattr(session, "customer_email", None)
        or (getattr(details, "email", None) if details else None),
        metadata={str(key): str(metadata[key]) for key in metadata.keys()},
        created_at=datetime.fromtimestamp(created, tz=UTC) if created else None,
    )
