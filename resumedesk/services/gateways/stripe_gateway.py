# resumedesk/services/gateways/stripe_gateway.py
"""
Stripe Checkout adapter.

The stripe SDK is synchronous, so calls run in a small thread pool and are
awaited with a bounded timeout. Session creation carries an idempotency key
derived from the order id: a retried create returns the same session instead
of opening a second one.
"""
import asyncio
import concurrent.futures
import functools
import json
import logging
from decimal import Decimal
from typing import Mapping, Optional

import stripe

from resumedesk.core import errors
from resumedesk.db.models import Gateway, Order, OrderStatus
from resumedesk.services.catalog import get_catalog
from resumedesk.services.gateways.base import (
    CheckoutSession,
    Notification,
    PaymentGateway,
    call_with_retry,
)

logger = logging.getLogger(__name__)

_thread_pool = concurrent.futures.ThreadPoolExecutor(max_workers=4)

# event type -> outcome; anything else is acknowledged and ignored
_SESSION_EVENTS = {
    "checkout.session.completed": OrderStatus.PAID,
    "checkout.session.async_payment_succeeded": OrderStatus.PAID,
    "checkout.session.async_payment_failed": OrderStatus.FAILED,
    "checkout.session.expired": OrderStatus.CANCELED,
}
_PAID_PAYMENT_STATUSES = ("paid", "no_payment_required")


def _to_minor_units(amount) -> int:
    return int((Decimal(amount) * 100).to_integral_value())


class StripeGateway(PaymentGateway):
    gateway = Gateway.STRIPE

    def __init__(self, secret_key: Optional[str], webhook_secret: Optional[str]):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    async def _run(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(_thread_pool, functools.partial(fn, *args, **kwargs))

    async def create_session(self, order: Order, *, success_url: str, cancel_url: str,
                             customer_email: Optional[str] = None) -> CheckoutSession:
        self._require_configured()
        package = get_catalog().get(order.plan)
        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "client_reference_id": order.id,
            "metadata": {"orderId": order.id, "userId": order.user_id, "plan": order.plan.value},
            "line_items": [
                {
                    "price_data": {
                        "currency": order.currency.value.lower(),
                        "product_data": {
                            "name": f"{package.name} Package",
                            "description": ", ".join(package.features),
                        },
                        "unit_amount": _to_minor_units(order.amount),
                    },
                    "quantity": 1,
                }
            ],
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = await call_with_retry(
                lambda: self._run(
                    stripe.checkout.Session.create,
                    api_key=self.secret_key,
                    idempotency_key=f"order-{order.id}",
                    **params,
                ),
                retry_on=(stripe.APIConnectionError,),
                label=f"stripe session for order {order.id}",
            )
        except asyncio.TimeoutError as exc:
            logger.error("Stripe session creation timed out for order %s", order.id)
            raise errors.GatewayUnavailable() from exc
        except stripe.StripeError as exc:
            logger.error("Stripe session creation failed for order %s: %s", order.id, exc)
            raise errors.GatewayUnavailable() from exc

        return CheckoutSession(redirect_url=session.url, external_session_id=session.id)

    def extract_signature(self, headers: Mapping[str, str], query_params: Mapping[str, str]) -> Optional[str]:
        return headers.get("stripe-signature")

    def verify_notification(self, raw_payload: bytes, signature: Optional[str]) -> Optional[Notification]:
        if not self.webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET not configured")
            raise errors.ServiceUnavailable("Webhook secret not configured")
        if not signature:
            raise errors.InvalidSignature("Missing Stripe-Signature header")

        try:
            payload = raw_payload.decode("utf-8") if isinstance(raw_payload, bytes) else raw_payload
            stripe.WebhookSignature.verify_header(
                payload, signature, self.webhook_secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
            )
            event = json.loads(payload)
        except stripe.SignatureVerificationError as exc:
            logger.warning("Stripe webhook signature verification failed: %s", exc)
            raise errors.InvalidSignature() from exc
        except ValueError as exc:
            logger.warning("Stripe webhook payload is not valid JSON")
            raise errors.InvalidSignature("Invalid payload") from exc

        event_type = event.get("type")
        outcome = _SESSION_EVENTS.get(event_type)
        if outcome is None:
            logger.info("Ignoring Stripe event %s (%s)", event.get("id"), event_type)
            return None

        session = (event.get("data") or {}).get("object") or {}
        if event_type == "checkout.session.completed" and session.get("payment_status") not in _PAID_PAYMENT_STATUSES:
            # delayed payment methods settle later via async_payment_* events
            logger.info("Stripe session %s completed with payment_status=%s; awaiting settlement",
                        session.get("id"), session.get("payment_status"))
            return None

        session_id = session.get("id")
        if not session_id:
            raise errors.InvalidSignature("Event carries no checkout session id")
        metadata = session.get("metadata") or {}
        return Notification(
            external_session_id=session_id,
            outcome=outcome,
            order_id=metadata.get("orderId") or session.get("client_reference_id"),
            event_type=event_type,
        )

    async def fetch_outcome(self, external_id: str) -> Optional[OrderStatus]:
        self._require_configured()
        try:
            session = await call_with_retry(
                lambda: self._run(stripe.checkout.Session.retrieve, external_id, api_key=self.secret_key),
                retry_on=(stripe.APIConnectionError,),
                label=f"stripe retrieve {external_id}",
            )
        except (asyncio.TimeoutError, stripe.StripeError) as exc:
            logger.error("Stripe session lookup failed for %s: %r", external_id, exc)
            raise errors.GatewayUnavailable() from exc

        if session.payment_status in _PAID_PAYMENT_STATUSES:
            return OrderStatus.PAID
        if session.status == "expired":
            return OrderStatus.CANCELED
        return None

    async def cancel_session(self, external_id: str) -> None:
        self._require_configured()
        try:
            await call_with_retry(
                lambda: self._run(stripe.checkout.Session.expire, external_id, api_key=self.secret_key),
                retry_on=(stripe.APIConnectionError,),
                label=f"stripe expire {external_id}",
            )
        except (asyncio.TimeoutError, stripe.StripeError) as exc:
            logger.error("Could not expire Stripe session %s: %r", external_id, exc)
            raise errors.GatewayUnavailable() from exc
