# resumedesk/services/gateways/registry.py
"""
Gateway adapter lookup.

Adapters are built once from settings; `get_gateways` is also the FastAPI
dependency routes use, so tests can swap the whole mapping out.
"""
from functools import lru_cache
from typing import Dict, Optional, Union
import logging

from resumedesk.core import errors
from resumedesk.core.config import settings
from resumedesk.db.models import Gateway, Currency
from resumedesk.services.gateways.base import PaymentGateway
from resumedesk.services.gateways.paymob_gateway import PaymobGateway
from resumedesk.services.gateways.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)

# each gateway settles in exactly one currency
GATEWAY_CURRENCY = {
    Gateway.STRIPE: Currency.USD,
    Gateway.PAYMOB: Currency.EGP,
}

REGIONAL_COUNTRIES = frozenset({"EG"})


@lru_cache()
def get_gateways() -> Dict[Gateway, PaymentGateway]:
    gateways = {
        Gateway.STRIPE: StripeGateway(
            secret_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        ),
        Gateway.PAYMOB: PaymobGateway(
            api_key=settings.PAYMOB_API_KEY,
            integration_id=settings.PAYMOB_INTEGRATION_ID,
            iframe_id=settings.PAYMOB_IFRAME_ID,
            hmac_secret=settings.PAYMOB_HMAC_SECRET,
            base_url=settings.PAYMOB_BASE_URL,
        ),
    }
    for gw, adapter in gateways.items():
        if not adapter.configured:
            logger.warning("%s credentials not found. %s payments will not work.", gw.value, gw.value.title())
    return gateways


def parse_gateway(name: Union[str, Gateway, None]) -> Gateway:
    try:
        return Gateway(str(getattr(name, "value", name) or "").upper())
    except ValueError:
        raise errors.NotFound(f"Unknown payment gateway: {name}")


def infer_gateway(country_code: Optional[str]) -> Gateway:
    """Advisory default from the caller's country; clients may override it."""
    if (country_code or "").upper() in REGIONAL_COUNTRIES:
        return Gateway.PAYMOB
    return Gateway.STRIPE
