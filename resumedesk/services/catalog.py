# resumedesk/services/catalog.py
"""
Package catalog: plan -> price per currency + feature list.

The catalog is built once per process from DEFAULT_PACKAGES and never mutated,
so the price shown on /packages is the price snapshotted onto an order.
"""
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from types import MappingProxyType
from typing import Iterable, List, Mapping, Tuple, Union

from resumedesk.core import errors
from resumedesk.db.models import Plan, Currency


@dataclass(frozen=True)
class PackageConfig:
    plan: Plan
    name: str
    prices: Mapping[Currency, Decimal]
    features: Tuple[str, ...]
    popular: bool = False


@dataclass(frozen=True)
class PackageSummary:
    id: str
    name: str
    price: Decimal
    currency: str
    features: Tuple[str, ...]
    popular: bool


DEFAULT_PACKAGES = (
    PackageConfig(
        plan=Plan.BASIC,
        name="Basic",
        prices=MappingProxyType({Currency.USD: Decimal("49"), Currency.EGP: Decimal("2450")}),
        features=(
            "ATS-optimized resume",
            "48-hour delivery",
            "PDF & Word formats",
        ),
    ),
    PackageConfig(
        plan=Plan.STANDARD,
        name="Standard",
        prices=MappingProxyType({Currency.USD: Decimal("99"), Currency.EGP: Decimal("4950")}),
        features=(
            "Everything in Basic",
            "LinkedIn profile rewrite",
            "1 tailored cover letter",
            "1 revision round",
        ),
        popular=True,
    ),
    PackageConfig(
        plan=Plan.PREMIUM,
        name="Premium",
        prices=MappingProxyType({Currency.USD: Decimal("199"), Currency.EGP: Decimal("9950")}),
        features=(
            "Everything in Standard",
            "2 resume variations",
            "Multiple cover letters",
            "Mock interview Q&A",
            "1-week priority support",
        ),
    ),
)


def _coerce_currency(currency: Union[str, Currency, None]) -> Currency:
    # unknown currencies price in USD
    try:
        return Currency(str(getattr(currency, "value", currency) or "").upper())
    except ValueError:
        return Currency.USD


class PackageCatalog:
    def __init__(self, packages: Iterable[PackageConfig]):
        self._packages = MappingProxyType({p.plan: p for p in packages})

    def get(self, plan: Union[str, Plan]) -> PackageConfig:
        try:
            return self._packages[Plan(getattr(plan, "value", plan))]
        except (ValueError, KeyError):
            raise errors.InvalidPlan(f"Invalid plan: {plan}")

    def price_for(self, plan: Union[str, Plan], currency: Union[str, Currency]) -> Decimal:
        return self.get(plan).prices[_coerce_currency(currency)]

    def list_packages(self, currency: Union[str, Currency, None] = Currency.USD) -> List[PackageSummary]:
        cur = _coerce_currency(currency)
        return [
            PackageSummary(
                id=p.plan.value,
                name=p.name,
                price=p.prices[cur],
                currency=cur.value,
                features=p.features,
                popular=p.popular,
            )
            for p in self._packages.values()
        ]


@lru_cache()
def get_catalog() -> PackageCatalog:
    return PackageCatalog(DEFAULT_PACKAGES)
