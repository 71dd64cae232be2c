"""Tests for payment confirmation and webhook handling."""

import asyncio
import json
import threading

import pytest

from pixperiment.containers import AppContainer
from pixperiment.domain.errors import (
    InconsistencyError,
    InvalidSignatureError,
    UpstreamVerificationError,
    ValidationError,
)
from pixperiment.domain.uploads import ImageFile
from pixperiment.services.payments import PaymentInitiator
from pixperiment.services.verification import WebhookOutcome
from tests.conftest import (
    FakeEmailClient,
    FakePaymentGateway,
    InMemoryUploadRepository,
    png_payload,
)


def _start_checkout(initiator: PaymentInitiator, caption: str = "sunset") -> str:
    link = initiator.initiate(
        "buyer@example.com",
        caption,
        ImageFile(name="sunset.png", type="image/png", data=png_payload()),
    )
    return link.session_id


def _event(session_id: str, event_type: str = "checkout.session.completed") -> bytes:
    return json.dumps(
        {"id": "evt_1", "type": event_type, "data": {"object": {"id": session_id}}}
    ).encode()


def test_confirm_materializes_and_sends_receipt(
    container: AppContainer,
    initiator: PaymentInitiator,
    gateway: FakePaymentGateway,
    email_client: FakeEmailClient,
) -> None:
    session_id = _start_checkout(initiator)
    gateway.mark_paid(session_id)

    result = asyncio.run(container.confirmation_service.confirm(session_id))

    assert result.created is True
    assert result.upload.upload_order == 1
    ((to, subject, html),) = email_client.sent
    assert to == "buyer@example.com"
    assert "#1" in subject
    assert "$1.00" in html
    assert "$1.01" in html


def test_confirm_twice_returns_same_upload_and_one_email(
    container: AppContainer,
    initiator: PaymentInitiator,
    gateway: FakePaymentGateway,
    email_client: FakeEmailClient,
) -> None:
    session_id = _start_checkout(initiator)
    gateway.mark_paid(session_id)

    first = asyncio.run(container.confirmation_service.confirm(session_id))
    second = asyncio.run(container.confirmation_service.confirm(session_id))

    assert second.created is False
    assert second.upload.id == first.upload.id
    assert len(email_client.sent) == 1


def test_confirm_rejects_unpaid_session(
    container: AppContainer,
    initiator: PaymentInitiator,
    upload_repository: InMemoryUploadRepository,
) -> None:
    session_id = _start_checkout(initiator)

    with pytest.raises(ValidationError):
        asyncio.run(container.confirmation_service.confirm(session_id))

    assert upload_repository.uploads == {}


def test_confirm_requires_session_id(container: AppContainer) -> None:
    with pytest.raises(ValidationError):
        asyncio.run(container.confirmation_service.confirm("  "))


def test_confirm_surfaces_processor_outage(
    container: AppContainer,
    initiator: PaymentInitiator,
    gateway: FakePaymentGateway,
) -> None:
    session_id = _start_checkout(initiator)
    gateway.mark_paid(session_id)
    gateway.fail_retrieve = True

    with pytest.raises(UpstreamVerificationError):
        asyncio.run(container.confirmation_service.confirm(session_id))


def test_email_failure_does_not_undo_upload(
    container: AppContainer,
    initiator: PaymentInitiator,
    gateway: FakePaymentGateway,
    email_client: FakeEmailClient,
    upload_repository: InMemoryUploadRepository,
) -> None:
    email_client.fail = True
    session_id = _start_checkout(initiator)
    gateway.mark_paid(session_id)

    result = asyncio.run(container.confirmation_service.confirm(session_id))

    assert result.created is True
    assert len(upload_repository.uploads) == 1


def test_webhook_materializes_completed_checkout(
    container: AppContainer,
    initiator: PaymentInitiator,
    gateway: FakePaymentGateway,
) -> None:
    session_id = _start_checkout(initiator)
    gateway.mark_paid(session_id)
    service = container.confirmation_service

    first = asyncio.run(service.handle_webhook(_event(session_id), "valid-signature"))
    second = asyncio.run(service.handle_webhook(_event(session_id), "valid-signature"))

    assert first == WebhookOutcome.MATERIALIZED
    assert second == WebhookOutcome.EXISTS


def test_webhook_rejects_bad_signature_before_any_work(
    container: AppContainer,
    initiator: PaymentInitiator,
    gateway: FakePaymentGateway,
    upload_repository: InMemoryUploadRepository,
) -> None:
    session_id = _start_checkout(initiator)
    gateway.mark_paid(session_id)

    with pytest.raises(InvalidSignatureError):
        asyncio.run(
            container.confirmation_service.handle_webhook(_event(session_id), "forged")
        )

    assert upload_repository.uploads == {}


def test_webhook_ignores_other_event_types(container: AppContainer) -> None:
    outcome = asyncio.run(
        container.confirmation_service.handle_webhook(
            _event("cs_any", "payment_intent.created"), "valid-signature"
        )
    )

    assert outcome == WebhookOutcome.IGNORED


def test_webhook_reports_unpaid_completion(
    container: AppContainer, initiator: PaymentInitiator
) -> None:
    session_id = _start_checkout(initiator)

    outcome = asyncio.run(
        container.confirmation_service.handle_webhook(
            _event(session_id), "valid-signature"
        )
    )

    assert outcome == WebhookOutcome.UNPAID


def test_webhook_for_session_without_payload_raises_inconsistency(
    container: AppContainer, gateway: FakePaymentGateway
) -> None:
    gateway.add_paid_session("cs_lost")

    with pytest.raises(InconsistencyError):
        asyncio.run(
            container.confirmation_service.handle_webhook(
                _event("cs_lost"), "valid-signature"
            )
        )


def test_webhook_and_browser_return_race_to_one_upload(
    container: AppContainer,
    initiator: PaymentInitiator,
    gateway: FakePaymentGateway,
    upload_repository: InMemoryUploadRepository,
    email_client: FakeEmailClient,
) -> None:
    session_id = _start_checkout(initiator)
    gateway.mark_paid(session_id)
    upload_repository.barrier = threading.Barrier(2)
    service = container.confirmation_service
    results: list[object] = []

    def via_webhook() -> None:
        results.append(
            asyncio.run(service.handle_webhook(_event(session_id), "valid-signature"))
        )

    def via_return() -> None:
        results.append(asyncio.run(service.confirm(session_id)).created)

    threads = [threading.Thread(target=via_webhook), threading.Thread(target=via_return)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert len(upload_repository.uploads) == 1
    assert len(results) == 2
    assert len(email_client.sent) == 1
