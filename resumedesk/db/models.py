# resumedesk/db/models.py
import datetime
import enum
import uuid

from sqlalchemy import Column, String, Text, ForeignKey, DateTime, Numeric, Enum, Index
from sqlalchemy.orm import relationship
from .base import Base


def _now():
    return datetime.datetime.now(datetime.timezone.utc)


def _uuid():
    return str(uuid.uuid4())


class Plan(str, enum.Enum):
    BASIC = "BASIC"
    STANDARD = "STANDARD"
    PREMIUM = "PREMIUM"


class Currency(str, enum.Enum):
    USD = "USD"
    EGP = "EGP"


class Gateway(str, enum.Enum):
    STRIPE = "STRIPE"
    PAYMOB = "PAYMOB"


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELED = "CANCELED"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING


class Language(str, enum.Enum):
    EN = "EN"
    AR = "AR"
    BOTH = "BOTH"


class SubmissionStatus(str, enum.Enum):
    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    QA = "QA"
    DELIVERED = "DELIVERED"


# fulfillment pipeline order; a submission only moves to a later stage
SUBMISSION_PIPELINE = (
    SubmissionStatus.NEW,
    SubmissionStatus.IN_PROGRESS,
    SubmissionStatus.QA,
    SubmissionStatus.DELIVERED,
)


class User(Base):
    __tablename__ = "users"
    # identity provider subject id
    id = Column(String, primary_key=True)
    email = Column(String, unique=True, index=True, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    profile_image_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=_now)
    updated_at = Column(DateTime, default=_now, onupdate=_now)

    orders = relationship("Order", back_populates="user")
    submissions = relationship("Submission", back_populates="user")


class Order(Base):
    __tablename__ = "orders"
    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    plan = Column(Enum(Plan, name="plan"), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(Enum(Currency, name="currency"), nullable=False)
    gateway = Column(Enum(Gateway, name="gateway"), nullable=False)
    status = Column(Enum(OrderStatus, name="order_status"), nullable=False, default=OrderStatus.PENDING)
    # Stripe checkout session id or Paymob order id
    external_id = Column(String, nullable=True)
    country_code = Column(String(2), nullable=True)
    ip = Column(String, nullable=True)
    created_at = Column(DateTime, default=_now)
    updated_at = Column(DateTime, default=_now, onupdate=_now)

    user = relationship("User", back_populates="orders")
    submissions = relationship("Submission", back_populates="order")

    __table_args__ = (Index("ix_orders_gateway_external_id", "gateway", "external_id"),)


class Submission(Base):
    __tablename__ = "submissions"
    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=True)
    role_target = Column(Text, nullable=False)
    industry = Column(Text, nullable=True)
    language = Column(Enum(Language, name="language"), nullable=False, default=Language.EN)
    job_ad_url = Column(Text, nullable=True)
    job_ad_text = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    cv_file_url = Column(Text, nullable=True)  # object-store key or URL, never bytes
    cover_letter_file_url = Column(Text, nullable=True)
    status = Column(Enum(SubmissionStatus, name="submission_status"), nullable=False, default=SubmissionStatus.NEW)
    created_at = Column(DateTime, default=_now)
    updated_at = Column(DateTime, default=_now, onupdate=_now)

    user = relationship("User", back_populates="submissions")
    order = relationship("Order", back_populates="submissions")
