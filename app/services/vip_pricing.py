"""
VIP pricing table and resolution.

Base prices are per 7 days (employee 1,000 THB, establishment 3,000 THB);
longer durations carry a discount. Everything here is pure and deterministic.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from app.core.config import settings
from app.core.errors import InvalidDuration, InvalidTier
from app.models.vip import TIER_EMPLOYEE, TIER_ESTABLISHMENT, VIP_TIERS

VIP_DURATIONS: Tuple[int, ...] = (7, 30, 90, 365)

_TIER_ALIASES = {
    "employee": TIER_EMPLOYEE,
    "employee-profile": TIER_EMPLOYEE,
    "employee_profile": TIER_EMPLOYEE,
    "establishment": TIER_ESTABLISHMENT,
}


@dataclass(frozen=True)
class VIPPrice:
    duration: int
    price: int
    discount: int = 0
    original_price: Optional[int] = None
    popular: bool = False

    @property
    def price_per_day(self) -> float:
        return round(self.price / self.duration, 2)


@dataclass(frozen=True)
class VIPTierConfig:
    name: str
    description: str
    features: List[str] = field(default_factory=list)
    prices: List[VIPPrice] = field(default_factory=list)


@dataclass(frozen=True)
class ResolvedPrice:
    price: int
    currency: str


VIP_PRICING: Dict[str, VIPTierConfig] = {
    TIER_EMPLOYEE: VIPTierConfig(
        name="Employee VIP",
        description="Boost your visibility in lineup and search results",
        features=[
            "VIP badge on profile",
            "Top position in establishment lineup",
            "Search ranking boost",
        ],
        prices=[
            VIPPrice(duration=7, price=1000),
            VIPPrice(duration=30, price=3600, discount=10, original_price=4000, popular=True),
            VIPPrice(duration=90, price=8400, discount=30, original_price=12000),
            VIPPrice(duration=365, price=18250, discount=50, original_price=36500),
        ],
    ),
    TIER_ESTABLISHMENT: VIPTierConfig(
        name="Establishment VIP",
        description="Maximize visibility on maps and search results",
        features=[
            "VIP badge on establishment listing",
            "Featured map marker",
            "Priority search ranking",
            "Homepage featured section placement",
        ],
        prices=[
            VIPPrice(duration=7, price=3000),
            VIPPrice(duration=30, price=10800, discount=10, original_price=12000, popular=True),
            VIPPrice(duration=90, price=25200, discount=30, original_price=36000),
            VIPPrice(duration=365, price=54750, discount=50, original_price=109500),
        ],
    ),
}


def normalize_tier(tier) -> str:
    """Map accepted spellings to the stored tier value, or raise InvalidTier."""
    if not isinstance(tier, str):
        raise InvalidTier()
    normalized = _TIER_ALIASES.get(tier.strip().lower())
    if normalized not in VIP_TIERS:
        raise InvalidTier()
    return normalized


def _normalize_duration(duration) -> int:
    # bool is an int subclass; True must not resolve to a 1-day tier
    if isinstance(duration, bool) or not isinstance(duration, int):
        raise InvalidDuration(detail=_duration_message())
    if duration not in VIP_DURATIONS:
        raise InvalidDuration(detail=_duration_message())
    return duration


def _duration_message() -> str:
    allowed = ", ".join(str(d) for d in VIP_DURATIONS[:-1])
    return f"Invalid duration. Duration must be {allowed}, or {VIP_DURATIONS[-1]} days"


def resolve(tier: str, duration: int) -> ResolvedPrice:
    """Return price and currency for a tier/duration pair."""
    config = VIP_PRICING[normalize_tier(tier)]
    days = _normalize_duration(duration)
    for option in config.prices:
        if option.duration == days:
            return ResolvedPrice(price=option.price, currency=settings.VIP_CURRENCY)
    raise InvalidDuration(detail=_duration_message())


def list_options(tier: str) -> dict:
    """Price table for display."""
    normalized = normalize_tier(tier)
    config = VIP_PRICING[normalized]
    return {
        "tier": normalized,
        "name": config.name,
        "description": config.description,
        "features": list(config.features),
        "currency": settings.VIP_CURRENCY,
        "prices": [
            {
                "duration": option.duration,
                "price": option.price,
                "discount": option.discount,
                "original_price": option.original_price,
                "popular": option.popular,
                "price_per_day": option.price_per_day,
            }
            for option in config.prices
        ],
    }
