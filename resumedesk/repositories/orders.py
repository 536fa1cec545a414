# resumedesk/repositories/orders.py
"""
Order persistence.

Status and external-id writes are single conditional UPDATE statements keyed
by primary key and guarded by the expected current state, so two concurrent
writers for the same order cannot both win. Callers learn whether their write
applied from the returned bool and re-read the row either way.
"""
from typing import Optional, List
from datetime import datetime, timezone
import logging

from sqlalchemy import select, update, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from resumedesk.core import errors
from resumedesk.db.models import Order, OrderStatus, Gateway

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


def _commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Order write failed")
        raise errors.InternalError("Failed to persist order") from exc


def insert_order(db: Session, **fields) -> Order:
    order = Order(status=OrderStatus.PENDING, **fields)
    db.add(order)
    _commit(db)
    db.refresh(order)
    return order


def get_order(db: Session, order_id: str) -> Optional[Order]:
    order = db.get(Order, order_id)
    if order is not None:
        # always read the committed row, never a stale identity-map copy
        db.refresh(order)
    return order


def get_order_by_external_id(db: Session, gateway: Gateway, external_id: str) -> Optional[Order]:
    stmt = select(Order).where(Order.gateway == gateway, Order.external_id == external_id)
    return db.execute(stmt).scalars().first()


def list_orders_for_user(db: Session, user_id: str) -> List[Order]:
    stmt = select(Order).where(Order.user_id == user_id).order_by(Order.created_at.desc())
    return list(db.execute(stmt).scalars())


def set_external_id(db: Session, order_id: str, external_id: str) -> bool:
    """Assign external_id unless a different one is already stored."""
    stmt = (
        update(Order)
        .where(
            Order.id == order_id,
            or_(Order.external_id.is_(None), Order.external_id == external_id),
        )
        .values(external_id=external_id, updated_at=_now())
        .execution_options(synchronize_session=False)
    )
    try:
        res = db.execute(stmt)
    except SQLAlchemyError as exc:
        db.rollback()
        raise errors.InternalError("Failed to persist order") from exc
    _commit(db)
    return res.rowcount == 1


def transition_from_pending(
    db: Session,
    order_id: str,
    new_status: OrderStatus,
    external_id: Optional[str] = None,
    user_id: Optional[str] = None,
    unopened: bool = False,
) -> bool:
    """
    set status=new_status where id=? and status='PENDING' [and extra guards]

    external_id: stored session must equal this value
    user_id: order must belong to this user
    unopened: no gateway session may be attached yet
    """
    conditions = [Order.id == order_id, Order.status == OrderStatus.PENDING]
    if external_id is not None:
        conditions.append(Order.external_id == external_id)
    if user_id is not None:
        conditions.append(Order.user_id == user_id)
    if unopened:
        conditions.append(Order.external_id.is_(None))

    stmt = (
        update(Order)
        .where(*conditions)
        .values(status=new_status, updated_at=_now())
        .execution_options(synchronize_session=False)
    )
    try:
        res = db.execute(stmt)
    except SQLAlchemyError as exc:
        db.rollback()
        raise errors.InternalError("Failed to persist order") from exc
    _commit(db)
    return res.rowcount == 1
