# resumedesk/services/orders.py
"""
Order lifecycle coordinator.

    PENDING -> PAID | FAILED | CANCELED     (terminal states have no exits)

Orders are written PENDING before any gateway call so every checkout attempt
is auditable. Terminal status is applied with a conditional UPDATE guarded by
status='PENDING' (and the stored session id for gateway outcomes), which makes
redelivered or concurrent notifications no-ops instead of errors.
"""
from typing import List, Optional, Union
import logging

from sqlalchemy.orm import Session

from resumedesk.core import errors
from resumedesk.db.models import Order, OrderStatus, Plan, Currency, Gateway
from resumedesk.repositories import orders as orders_repo
from resumedesk.services.catalog import PackageCatalog, get_catalog

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (OrderStatus.PAID, OrderStatus.FAILED, OrderStatus.CANCELED)


def _require(db: Session, order_id: str) -> Order:
    order = orders_repo.get_order(db, order_id)
    if order is None:
        raise errors.OrderNotFound()
    return order


def create_order(
    db: Session,
    user_id: str,
    plan: Union[str, Plan],
    currency: Union[str, Currency],
    gateway: Union[str, Gateway],
    country_code: Optional[str] = None,
    ip: Optional[str] = None,
    catalog: Optional[PackageCatalog] = None,
) -> Order:
    catalog = catalog or get_catalog()
    package = catalog.get(plan)
    try:
        currency = Currency(getattr(currency, "value", currency))
        gateway = Gateway(getattr(gateway, "value", gateway))
    except ValueError as exc:
        raise errors.ValidationError(str(exc)) from exc

    order = orders_repo.insert_order(
        db,
        user_id=user_id,
        plan=package.plan,
        amount=catalog.price_for(package.plan, currency),
        currency=currency,
        gateway=gateway,
        country_code=(country_code or "")[:2].upper() or None,
        ip=ip,
    )
    logger.info("Order %s created: plan=%s amount=%s %s via %s", order.id, order.plan.value,
                order.amount, currency.value, gateway.value)
    return order


def attach_external_session(db: Session, order_id: str, external_id: str) -> Order:
    if not orders_repo.set_external_id(db, order_id, external_id):
        order = _require(db, order_id)
        logger.error("Order %s already bound to session %s, refusing %s", order_id, order.external_id, external_id)
        raise errors.SessionMismatch()
    return _require(db, order_id)


def reconcile(db: Session, order_id: str, external_id: str, outcome: Union[str, OrderStatus]) -> Order:
    """
    Apply a gateway outcome to an order.

    Already-terminal orders are returned unchanged (gateways redeliver). A
    session id that does not match the stored one is never absorbed.
    """
    try:
        outcome = OrderStatus(getattr(outcome, "value", outcome))
    except ValueError as exc:
        raise errors.ValidationError(f"Unknown outcome: {outcome}") from exc
    if outcome not in TERMINAL_STATUSES:
        raise errors.ValidationError(f"Outcome must be terminal, got {outcome.value}")

    order = _require(db, order_id)
    if not external_id or order.external_id != external_id:
        logger.error("Session mismatch for order %s: stored=%s received=%s", order_id, order.external_id, external_id)
        raise errors.SessionMismatch()

    if order.status.is_terminal:
        logger.info("Order %s already %s; ignoring %s", order_id, order.status.value, outcome.value)
        return order

    if orders_repo.transition_from_pending(db, order_id, outcome, external_id=external_id):
        logger.info("Order %s marked %s", order_id, outcome.value)
    else:
        # lost the race to another writer; whatever it applied stands
        logger.info("Order %s changed concurrently; %s not applied", order_id, outcome.value)
    return _require(db, order_id)


def apply_notification(db: Session, gateway: Gateway, notification) -> Order:
    """Resolve the order a verified gateway notification refers to and reconcile it."""
    order = None
    if notification.order_id:
        order = orders_repo.get_order(db, notification.order_id)
    if order is None:
        order = orders_repo.get_order_by_external_id(db, gateway, notification.external_session_id)
    if order is None:
        raise errors.OrderNotFound()
    if order.gateway != gateway:
        logger.error("Order %s belongs to %s, notification came from %s", order.id, order.gateway.value, gateway.value)
        raise errors.SessionMismatch()
    return reconcile(db, order.id, notification.external_session_id, notification.outcome)


def fail_unopened_order(db: Session, order_id: str) -> Order:
    # gateway session could not be created; no notification will ever arrive
    if orders_repo.transition_from_pending(db, order_id, OrderStatus.FAILED, unopened=True):
        logger.warning("Order %s marked FAILED: gateway session was never opened", order_id)
    return _require(db, order_id)


def cancel_order(db: Session, order_id: str, user_id: str) -> Order:
    order = get_user_order(db, order_id, user_id)
    if order.status.is_terminal:
        return order
    if orders_repo.transition_from_pending(db, order_id, OrderStatus.CANCELED, user_id=user_id):
        logger.info("Order %s canceled by user", order_id)
    return _require(db, order_id)


def list_user_orders(db: Session, user_id: str) -> List[Order]:
    return orders_repo.list_orders_for_user(db, user_id)


def get_user_order(db: Session, order_id: str, user_id: str) -> Order:
    order = orders_repo.get_order(db, order_id)
    # foreign orders look exactly like missing ones
    if order is None or order.user_id != user_id:
        raise errors.OrderNotFound()
    return order
