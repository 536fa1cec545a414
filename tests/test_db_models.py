# tests/test_db_models.py
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from resumedesk.db.models import (
    Currency,
    Gateway,
    Language,
    Order,
    OrderStatus,
    Plan,
    Submission,
    SubmissionStatus,
    User,
)


def test_create_user_order_submission(db_session):
    db = db_session
    user = User(id="sub-jane", email="jane@example.com")
    db.add(user)
    db.commit()

    order = Order(user_id=user.id, plan=Plan.BASIC, amount=Decimal("49.00"), currency=Currency.USD,
                  gateway=Gateway.STRIPE)
    db.add(order)
    db.commit()
    db.refresh(order)
    assert order.id is not None
    assert order.status == OrderStatus.PENDING
    assert order.amount == Decimal("49.00")

    sub = Submission(user_id=user.id, order_id=order.id, role_target="Data Analyst", job_ad_text="SQL, Python")
    db.add(sub)
    db.commit()
    db.refresh(sub)
    assert sub.status == SubmissionStatus.NEW
    assert sub.language == Language.EN
    assert sub.order.id == order.id
    assert [o.id for o in user.orders] == [order.id]


def test_order_requires_existing_user(db_session):
    db_session.add(Order(user_id="ghost", plan=Plan.BASIC, amount=Decimal("49"), currency=Currency.USD,
                         gateway=Gateway.STRIPE))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_email_is_unique(db_session):
    db_session.add(User(id="a", email="same@example.com"))
    db_session.commit()
    db_session.add(User(id="b", email="same@example.com"))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_terminal_statuses():
    assert not OrderStatus.PENDING.is_terminal
    assert all(s.is_terminal for s in (OrderStatus.PAID, OrderStatus.FAILED, OrderStatus.CANCELED))
