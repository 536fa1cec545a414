# tests/test_stripe_gateway.py
from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

from resumedesk.core import errors
from resumedesk.db.models import Currency, Gateway, Order, OrderStatus, Plan
from resumedesk.services.gateways.stripe_gateway import StripeGateway

from payloads import STRIPE_WEBHOOK_SECRET, stripe_event, stripe_signature


def _order():
    return Order(
        id="order-123",
        user_id="user-a",
        plan=Plan.STANDARD,
        amount=Decimal("99"),
        currency=Currency.USD,
        gateway=Gateway.STRIPE,
        status=OrderStatus.PENDING,
    )


@pytest.mark.asyncio
async def test_create_session_sends_snapshot_and_idempotency_key(monkeypatch, stripe_gateway):
    calls = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(id="cs_test_abc", url="https://checkout.stripe.com/c/pay/cs_test_abc")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)

    session = await stripe_gateway.create_session(
        _order(), success_url="https://site/ok", cancel_url="https://site/cancel", customer_email="a@example.com"
    )

    assert session.external_session_id == "cs_test_abc"
    assert session.redirect_url.startswith("https://checkout.stripe.com/")
    sent = calls[0]
    assert sent["idempotency_key"] == "order-order-123"
    assert sent["metadata"]["orderId"] == "order-123"
    assert sent["client_reference_id"] == "order-123"
    assert sent["customer_email"] == "a@example.com"
    price = sent["line_items"][0]["price_data"]
    assert price["unit_amount"] == 9900
    assert price["currency"] == "usd"


@pytest.mark.asyncio
async def test_create_session_retries_once_on_connection_error(monkeypatch, stripe_gateway):
    attempts = []

    def flaky_create(**kwargs):
        attempts.append(kwargs["idempotency_key"])
        if len(attempts) == 1:
            raise stripe.APIConnectionError("connection reset")
        return SimpleNamespace(id="cs_test_retry", url="https://checkout.stripe.com/c/pay/cs_test_retry")

    monkeypatch.setattr(stripe.checkout.Session, "create", flaky_create)
    session = await stripe_gateway.create_session(_order(), success_url="s", cancel_url="c")
    assert session.external_session_id == "cs_test_retry"
    # both attempts carry the same key so Stripe never opens two sessions
    assert attempts == ["order-order-123", "order-order-123"]


@pytest.mark.asyncio
async def test_create_session_maps_provider_errors(monkeypatch, stripe_gateway):
    def broken_create(**kwargs):
        raise stripe.APIConnectionError("down")

    monkeypatch.setattr(stripe.checkout.Session, "create", broken_create)
    with pytest.raises(errors.GatewayUnavailable):
        await stripe_gateway.create_session(_order(), success_url="s", cancel_url="c")


@pytest.mark.asyncio
async def test_create_session_without_key():
    gw = StripeGateway(secret_key=None, webhook_secret=STRIPE_WEBHOOK_SECRET)
    with pytest.raises(errors.GatewayUnavailable):
        await gw.create_session(_order(), success_url="s", cancel_url="c")


def test_verify_completed_event(stripe_gateway):
    payload = stripe_event("checkout.session.completed", "cs_test_1", order_id="order-123")
    note = stripe_gateway.verify_notification(payload, stripe_signature(payload))
    assert note.external_session_id == "cs_test_1"
    assert note.outcome == OrderStatus.PAID
    assert note.order_id == "order-123"


@pytest.mark.parametrize(
    "event_type,outcome",
    [
        ("checkout.session.async_payment_succeeded", OrderStatus.PAID),
        ("checkout.session.async_payment_failed", OrderStatus.FAILED),
        ("checkout.session.expired", OrderStatus.CANCELED),
    ],
)
def test_verify_maps_session_events(stripe_gateway, event_type, outcome):
    payload = stripe_event(event_type, "cs_test_1", payment_status="unpaid")
    assert stripe_gateway.verify_notification(payload, stripe_signature(payload)).outcome == outcome


def test_completed_but_unpaid_is_ignored(stripe_gateway):
    payload = stripe_event("checkout.session.completed", "cs_test_1", payment_status="unpaid")
    assert stripe_gateway.verify_notification(payload, stripe_signature(payload)) is None


def test_unrelated_event_is_ignored(stripe_gateway):
    payload = stripe_event("customer.created", "cus_1")
    assert stripe_gateway.verify_notification(payload, stripe_signature(payload)) is None


def test_bad_signature_is_rejected(stripe_gateway):
    payload = stripe_event("checkout.session.completed", "cs_test_1")
    with pytest.raises(errors.InvalidSignature):
        stripe_gateway.verify_notification(payload, stripe_signature(payload, secret="whsec_wrong"))


def test_tampered_payload_is_rejected(stripe_gateway):
    payload = stripe_event("checkout.session.expired", "cs_test_1")
    header = stripe_signature(payload)
    forged = payload.replace(b"checkout.session.expired", b"checkout.session.completed")
    with pytest.raises(errors.InvalidSignature):
        stripe_gateway.verify_notification(forged, header)


def test_stale_timestamp_is_rejected(stripe_gateway):
    payload = stripe_event("checkout.session.completed", "cs_test_1")
    with pytest.raises(errors.InvalidSignature):
        stripe_gateway.verify_notification(payload, stripe_signature(payload, timestamp=1_000_000))


def test_missing_signature_header(stripe_gateway):
    with pytest.raises(errors.InvalidSignature):
        stripe_gateway.verify_notification(b"{}", None)


def test_missing_webhook_secret():
    gw = StripeGateway(secret_key="sk_test_123", webhook_secret=None)
    payload = stripe_event("checkout.session.completed", "cs_test_1")
    with pytest.raises(errors.ServiceUnavailable):
        gw.verify_notification(payload, stripe_signature(payload))


@pytest.mark.asyncio
async def test_fetch_outcome(monkeypatch, stripe_gateway):
    sessions = {
        "cs_paid": SimpleNamespace(payment_status="paid", status="complete"),
        "cs_open": SimpleNamespace(payment_status="unpaid", status="open"),
        "cs_expired": SimpleNamespace(payment_status="unpaid", status="expired"),
    }
    monkeypatch.setattr(stripe.checkout.Session, "retrieve", lambda sid, **kwargs: sessions[sid])

    assert await stripe_gateway.fetch_outcome("cs_paid") == OrderStatus.PAID
    assert await stripe_gateway.fetch_outcome("cs_open") is None
    assert await stripe_gateway.fetch_outcome("cs_expired") == OrderStatus.CANCELED
