# resumedesk/api/v1/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from resumedesk.db.models import Currency, Gateway, Language, OrderStatus, Plan, SubmissionStatus


class CamelModel(BaseModel):
    # JSON bodies are camelCase on the wire; snake_case is accepted too
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PackageOut(CamelModel):
    id: str
    name: str
    price: Decimal
    currency: str
    features: List[str]
    popular: bool = False


class GeoOut(CamelModel):
    country_code: str
    inferred_gateway: str
    ip: Optional[str] = None


class UserOut(CamelModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CheckoutIn(CamelModel):
    plan: str
    gateway: Optional[Gateway] = None
    country_code: Optional[str] = None
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None

    @field_validator("gateway", mode="before")
    @classmethod
    def _gateway_upper(cls, value):
        # /geo answers in lowercase
        return value.upper() if isinstance(value, str) else value


class CheckoutOut(CamelModel):
    redirect_url: str
    order_id: str
    session_id: str


class OrderOut(CamelModel):
    id: str
    user_id: str
    plan: Plan
    amount: Decimal
    currency: Currency
    gateway: Gateway
    status: OrderStatus
    external_id: Optional[str] = None
    country_code: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SubmissionCreate(CamelModel):
    role_target: Optional[str] = None
    order_id: Optional[str] = None
    industry: Optional[str] = None
    language: Language = Language.EN
    job_ad_url: Optional[str] = None
    job_ad_text: Optional[str] = None
    notes: Optional[str] = None
    cv_file_url: Optional[str] = None
    cover_letter_file_url: Optional[str] = None


class SubmissionOut(CamelModel):
    id: str
    user_id: str
    order_id: Optional[str] = None
    role_target: str
    industry: Optional[str] = None
    language: Language
    job_ad_url: Optional[str] = None
    job_ad_text: Optional[str] = None
    notes: Optional[str] = None
    cv_file_url: Optional[str] = None
    cover_letter_file_url: Optional[str] = None
    status: SubmissionStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UploadOut(BaseModel):
    files: Dict[str, Optional[str]]


class PresignIn(CamelModel):
    filename: str
    content_type: Optional[str] = None


class PresignOut(CamelModel):
    upload_url: str
    storage_key: str
    expires_in: int


class WebhookAck(BaseModel):
    received: bool = True
    ignored: bool = False
