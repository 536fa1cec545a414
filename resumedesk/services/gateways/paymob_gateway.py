# resumedesk/services/gateways/paymob_gateway.py
"""
Paymob Accept adapter (iframe flow) over httpx.

Session creation is three calls: auth token -> register order (our order id
as merchant_order_id) -> payment key. The Paymob order id is the external
session id. Callbacks are authenticated with HMAC-SHA512 over a fixed,
ordered list of fields, sent as the `hmac` query parameter.

Env configuration:
- PAYMOB_API_KEY, PAYMOB_INTEGRATION_ID, PAYMOB_IFRAME_ID: required for checkout
- PAYMOB_HMAC_SECRET: required for callbacks
- PAYMOB_BASE_URL: defaults to https://accept.paymob.com
"""
import asyncio
import hashlib
import hmac
import json
import logging
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

import httpx

from resumedesk.core import errors
from resumedesk.core.config import settings
from resumedesk.db.models import Gateway, Order, OrderStatus
from resumedesk.services.gateways.base import (
    CheckoutSession,
    Notification,
    PaymentGateway,
    call_with_retry,
)

logger = logging.getLogger(__name__)

# concatenation order is defined by Paymob per callback type
HMAC_FIELDS = {
    "TRANSACTION": (
        "amount_cents",
        "created_at",
        "currency",
        "error_occured",
        "has_parent_transaction",
        "id",
        "integration_id",
        "is_3d_secure",
        "is_auth",
        "is_capture",
        "is_refunded",
        "is_standalone_payment",
        "is_voided",
        "order.id",
        "owner",
        "pending",
        "source_data.pan",
        "source_data.sub_type",
        "source_data.type",
        "success",
    ),
    "TOKEN": (
        "card_subtype",
        "created_at",
        "email",
        "id",
        "masked_pan",
        "merchant_id",
        "order_id",
        "token",
    ),
}

_PAYMENT_KEY_EXPIRATION = 3600


def _lookup(obj: Any, dotted: str) -> Any:
    for part in dotted.split("."):
        if not isinstance(obj, dict):
            return None
        obj = obj.get(part)
    return obj


def _hmac_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def compute_hmac(obj: Dict[str, Any], secret: str, callback_type: str = "TRANSACTION") -> str:
    message = "".join(_hmac_value(_lookup(obj, field)) for field in HMAC_FIELDS[callback_type])
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha512).hexdigest()


def transaction_outcome(txn: Dict[str, Any]) -> Optional[OrderStatus]:
    if txn.get("pending"):
        return None
    if txn.get("success") and not (txn.get("is_voided") or txn.get("is_refunded")):
        return OrderStatus.PAID
    return OrderStatus.FAILED


class PaymobGateway(PaymentGateway):
    gateway = Gateway.PAYMOB

    def __init__(
        self,
        api_key: Optional[str],
        integration_id: Optional[int],
        iframe_id: Optional[str],
        hmac_secret: Optional[str],
        base_url: str = "https://accept.paymob.com",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.integration_id = integration_id
        self.iframe_id = iframe_id
        self.hmac_secret = hmac_secret
        self.base_url = base_url.rstrip("/")
        # tests inject httpx.MockTransport here
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.integration_id and self.iframe_id)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=float(settings.GATEWAY_TIMEOUT_SEC),
            transport=self._transport,
        )

    async def _post(self, client: httpx.AsyncClient, path: str, body: Dict[str, Any],
                    retry: bool = True) -> Dict[str, Any]:
        resp = await call_with_retry(
            lambda: client.post(path, json=body),
            retry_on=(httpx.TransportError,),
            label=f"paymob {path}",
            retries=None if retry else 0,
        )
        resp.raise_for_status()
        return resp.json()

    async def _auth_token(self, client: httpx.AsyncClient) -> str:
        data = await self._post(client, "/api/auth/tokens", {"api_key": self.api_key})
        return data["token"]

    async def create_session(self, order: Order, *, success_url: str, cancel_url: str,
                             customer_email: Optional[str] = None) -> CheckoutSession:
        self._require_configured()
        amount_cents = int((Decimal(order.amount) * 100).to_integral_value())
        try:
            async with self._client() as client:
                token = await self._auth_token(client)
                # registering an order is not idempotent, so it is never retried
                paymob_order = await self._post(client, "/api/ecommerce/orders", {
                    "auth_token": token,
                    "delivery_needed": False,
                    "amount_cents": amount_cents,
                    "currency": order.currency.value,
                    "merchant_order_id": order.id,
                    "items": [],
                }, retry=False)
                payment_key = await self._post(client, "/api/acceptance/payment_keys", {
                    "auth_token": token,
                    "amount_cents": amount_cents,
                    "expiration": _PAYMENT_KEY_EXPIRATION,
                    "order_id": paymob_order["id"],
                    "currency": order.currency.value,
                    "integration_id": self.integration_id,
                    "billing_data": _billing_data(customer_email),
                })
        except httpx.HTTPStatusError as exc:
            logger.error("Paymob rejected checkout for order %s: %s %s", order.id,
                         exc.response.status_code, exc.response.text[:200])
            raise errors.GatewayUnavailable() from exc
        except (httpx.HTTPError, asyncio.TimeoutError, KeyError, ValueError) as exc:
            logger.error("Paymob checkout failed for order %s: %r", order.id, exc)
            raise errors.GatewayUnavailable() from exc

        redirect = f"{self.base_url}/api/acceptance/iframes/{self.iframe_id}?payment_token={payment_key['token']}"
        return CheckoutSession(redirect_url=redirect, external_session_id=str(paymob_order["id"]))

    def extract_signature(self, headers: Mapping[str, str], query_params: Mapping[str, str]) -> Optional[str]:
        return query_params.get("hmac") or headers.get("x-paymob-hmac")

    def verify_notification(self, raw_payload: bytes, signature: Optional[str]) -> Optional[Notification]:
        if not self.hmac_secret:
            logger.error("PAYMOB_HMAC_SECRET not configured")
            raise errors.ServiceUnavailable("Webhook secret not configured")
        if not signature:
            raise errors.InvalidSignature("Missing hmac")
        try:
            body = json.loads(raw_payload)
        except ValueError as exc:
            raise errors.InvalidSignature("Invalid payload") from exc
        if not isinstance(body, dict) or not isinstance(body.get("obj"), dict):
            raise errors.InvalidSignature("Invalid payload")

        callback_type = str(body.get("type") or "").upper()
        obj = body["obj"]
        if callback_type not in HMAC_FIELDS:
            # no field list to verify against
            logger.warning("Rejecting Paymob callback of unknown type %r", callback_type)
            raise errors.InvalidSignature("Unknown callback type")

        expected = compute_hmac(obj, self.hmac_secret, callback_type)
        if not hmac.compare_digest(expected, signature.strip().lower()):
            logger.warning("Paymob callback HMAC mismatch (type=%s id=%s)", callback_type, obj.get("id"))
            raise errors.InvalidSignature()

        if callback_type != "TRANSACTION":
            logger.info("Ignoring Paymob %s callback %s", callback_type, obj.get("id"))
            return None

        outcome = transaction_outcome(obj)
        paymob_order = obj.get("order") or {}
        if outcome is None:
            logger.info("Paymob transaction %s for order %s still pending", obj.get("id"), paymob_order.get("id"))
            return None
        if paymob_order.get("id") is None:
            raise errors.InvalidSignature("Transaction carries no order id")
        return Notification(
            external_session_id=str(paymob_order["id"]),
            outcome=outcome,
            order_id=paymob_order.get("merchant_order_id"),
            event_type=callback_type,
        )

    async def fetch_outcome(self, external_id: str) -> Optional[OrderStatus]:
        self._require_configured()
        try:
            async with self._client() as client:
                token = await self._auth_token(client)
                txn = await self._post(client, "/api/ecommerce/orders/transaction_inquiry", {
                    "auth_token": token,
                    "order_id": external_id,
                })
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                # no transaction attempted yet
                return None
            logger.error("Paymob inquiry for %s failed: %s", external_id, exc.response.status_code)
            raise errors.GatewayUnavailable() from exc
        except (httpx.HTTPError, asyncio.TimeoutError, KeyError, ValueError) as exc:
            logger.error("Paymob inquiry for %s failed: %r", external_id, exc)
            raise errors.GatewayUnavailable() from exc
        return transaction_outcome(txn)


def _billing_data(email: Optional[str]) -> Dict[str, str]:
    # Paymob requires every billing field; the service collects none of them
    fields = ("apartment", "floor", "street", "building", "shipping_method", "postal_code",
              "city", "country", "state", "first_name", "last_name", "phone_number")
    data = {f: "NA" for f in fields}
    data["email"] = email or "NA"
    return data
