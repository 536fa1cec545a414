# resumedesk/services/checkout.py
"""
Checkout flows that span the database and a payment gateway.

    start_checkout      create PENDING order -> open gateway session -> attach session id
    handle_notification verify webhook -> reconcile order
    refresh_order       poll the gateway for an outcome the webhook has not delivered
    cancel_checkout     user left the hosted page; expire the session, then cancel

The async flows await the gateway on the event loop and push every session
call to the threadpool, since the SQLAlchemy session is synchronous.
"""
from dataclasses import dataclass
from typing import Mapping, Optional
import logging

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from resumedesk.core import errors
from resumedesk.core.config import settings
from resumedesk.db.models import Gateway, Order, User
from resumedesk.services import orders as coordinator
from resumedesk.services.catalog import PackageCatalog
from resumedesk.services.gateways.base import PaymentGateway
from resumedesk.services.gateways.registry import GATEWAY_CURRENCY

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    order: Order
    redirect_url: str
    session_id: str


def default_return_urls(gateway: Gateway):
    site = settings.SITE_URL.rstrip("/")
    success = f"{site}/order/success"
    if gateway is Gateway.STRIPE:
        success += "?session_id={CHECKOUT_SESSION_ID}"
    return success, f"{site}/order/cancel"


async def start_checkout(
    db: Session,
    user: User,
    plan: str,
    gateway: Gateway,
    adapter: PaymentGateway,
    catalog: PackageCatalog,
    country_code: Optional[str] = None,
    ip: Optional[str] = None,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> CheckoutResult:
    order = await run_in_threadpool(
        coordinator.create_order,
        db,
        user_id=user.id,
        plan=plan,
        currency=GATEWAY_CURRENCY[gateway],
        gateway=gateway,
        country_code=country_code,
        ip=ip,
        catalog=catalog,
    )
    default_success, default_cancel = default_return_urls(gateway)
    try:
        session = await adapter.create_session(
            order,
            success_url=success_url or default_success,
            cancel_url=cancel_url or default_cancel,
            customer_email=user.email,
        )
    except errors.GatewayUnavailable:
        # the attempt stays on record as FAILED so the dashboard never shows a
        # checkout that can no longer complete
        await run_in_threadpool(coordinator.fail_unopened_order, db, order.id)
        raise

    order = await run_in_threadpool(coordinator.attach_external_session, db, order.id, session.external_session_id)
    return CheckoutResult(order=order, redirect_url=session.redirect_url, session_id=session.external_session_id)


def handle_notification(
    db: Session,
    gateway: Gateway,
    adapter: PaymentGateway,
    raw_payload: bytes,
    headers: Mapping[str, str],
    query_params: Mapping[str, str],
) -> Optional[Order]:
    """
    Returns the reconciled order, or None when the event was acknowledged
    without touching any order (ignored type, unknown order). Blocking; routes
    call it from the threadpool.
    """
    signature = adapter.extract_signature(headers, query_params)
    notification = adapter.verify_notification(raw_payload, signature)
    if notification is None:
        return None
    try:
        return coordinator.apply_notification(db, gateway, notification)
    except errors.OrderNotFound:
        # retrying cannot make an unknown order appear
        logger.error("%s notification for unknown order (order_id=%s session=%s)", gateway.value,
                     notification.order_id, notification.external_session_id)
        return None


async def refresh_order(db: Session, order: Order, adapter: PaymentGateway) -> Order:
    if order.status.is_terminal or not order.external_id:
        return order
    outcome = await adapter.fetch_outcome(order.external_id)
    if outcome is None:
        return order
    return await run_in_threadpool(coordinator.reconcile, db, order.id, order.external_id, outcome)


async def cancel_checkout(db: Session, order: Order, adapter: PaymentGateway) -> Order:
    if order.status.is_terminal:
        return order
    if order.external_id and adapter.configured:
        # a payment may have landed after the user left the hosted page
        outcome = await adapter.fetch_outcome(order.external_id)
        if outcome is not None:
            return await run_in_threadpool(coordinator.reconcile, db, order.id, order.external_id, outcome)
        await adapter.cancel_session(order.external_id)
    return await run_in_threadpool(coordinator.cancel_order, db, order.id, order.user_id)
