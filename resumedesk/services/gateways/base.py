# resumedesk/services/gateways/base.py
"""
Payment gateway adapter interface.

Every provider opens a hosted checkout session for an order and later sends a
signed notification. Callers only see CheckoutSession / Notification and the
error taxonomy; wire formats stay inside the adapters.
"""
import abc
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping, Optional, Tuple, Type, TypeVar

from resumedesk.core import errors
from resumedesk.core.config import settings
from resumedesk.db.models import Gateway, Order, OrderStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CheckoutSession:
    redirect_url: str
    external_session_id: str


@dataclass(frozen=True)
class Notification:
    external_session_id: str
    outcome: OrderStatus
    # our order id when the provider echoes it back (metadata / merchant_order_id)
    order_id: Optional[str] = None
    event_type: Optional[str] = None


def max_retries() -> int:
    # never more than one retry for calls that may open a payment session
    return max(0, min(int(settings.GATEWAY_RETRIES), 1))


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    *,
    retry_on: Tuple[Type[BaseException], ...],
    label: str,
    timeout: Optional[float] = None,
    retries: Optional[int] = None,
) -> T:
    """
    Await func() with a bounded timeout, retrying at most once on retry_on or timeout.
    Pass retries=0 for calls that must not be repeated.
    """
    timeout = timeout or float(settings.GATEWAY_TIMEOUT_SEC)
    retries = max_retries() if retries is None else min(retries, max_retries())
    for attempt in range(1, retries + 2):
        try:
            return await asyncio.wait_for(func(), timeout=timeout)
        except (asyncio.TimeoutError,) + tuple(retry_on) as exc:
            if attempt <= retries:
                logger.warning("%s failed (attempt %s), retrying once: %r", label, attempt, exc)
                continue
            raise


class PaymentGateway(abc.ABC):
    gateway: Gateway

    @property
    @abc.abstractmethod
    def configured(self) -> bool:
        """True when credentials for opening sessions are present."""

    @abc.abstractmethod
    async def create_session(
        self,
        order: Order,
        *,
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str] = None,
    ) -> CheckoutSession:
        ...

    @abc.abstractmethod
    def verify_notification(self, raw_payload: bytes, signature: Optional[str]) -> Optional[Notification]:
        """
        Verify and parse a webhook body. Returns None for events that must be
        acknowledged but not applied. Raises InvalidSignature on failure.
        """

    @abc.abstractmethod
    def extract_signature(self, headers: Mapping[str, str], query_params: Mapping[str, str]) -> Optional[str]:
        ...

    @abc.abstractmethod
    async def fetch_outcome(self, external_id: str) -> Optional[OrderStatus]:
        """Ask the provider for a terminal outcome (reconciliation poll)."""

    async def cancel_session(self, external_id: str) -> None:
        return None

    def _require_configured(self) -> None:
        if not self.configured:
            logger.error("%s checkout requested but credentials are not configured", self.gateway.value)
            raise errors.GatewayUnavailable(f"{self.gateway.value.title()} payments are not configured")
