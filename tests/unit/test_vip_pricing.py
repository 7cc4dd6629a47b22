"""
Unit tests for VIP price resolution.
Run: pytest tests/unit/test_vip_pricing.py -v
"""
import pytest

from app.core.errors import InvalidDuration, InvalidTier, ValidationError
from app.services import vip_pricing

EXPECTED_PRICES = {
    ("employee", 7): 1000,
    ("employee", 30): 3600,
    ("employee", 90): 8400,
    ("employee", 365): 18250,
    ("establishment", 7): 3000,
    ("establishment", 30): 10800,
    ("establishment", 90): 25200,
    ("establishment", 365): 54750,
}


@pytest.mark.parametrize("tier,duration", sorted(EXPECTED_PRICES))
def test_resolve_known_pairs(tier, duration):
    resolved = vip_pricing.resolve(tier, duration)
    assert resolved.price == EXPECTED_PRICES[(tier, duration)]
    assert resolved.currency == "THB"


def test_resolve_is_deterministic():
    first = vip_pricing.resolve("establishment", 90)
    assert all(vip_pricing.resolve("establishment", 90) == first for _ in range(5))


@pytest.mark.parametrize("duration", [0, 1, 15, 31, 364, -7, 7.0, "30", None, True])
def test_resolve_rejects_unknown_durations(duration):
    with pytest.raises(InvalidDuration) as exc:
        vip_pricing.resolve("employee", duration)
    assert exc.value.status_code == 400
    assert exc.value.detail.startswith("Invalid duration")
    assert "7, 30, 90, or 365" in exc.value.detail


@pytest.mark.parametrize("tier", ["premium", "", None, 1, "employees"])
def test_resolve_rejects_unknown_tiers(tier):
    with pytest.raises(InvalidTier):
        vip_pricing.resolve(tier, 30)


def test_invalid_tier_is_a_validation_error():
    """Tier and duration failures share the 400 validation family."""
    with pytest.raises(ValidationError):
        vip_pricing.normalize_tier("gold")


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("employee", "employee"),
        ("employee-profile", "employee"),
        ("Employee_Profile", "employee"),
        (" establishment ", "establishment"),
    ],
)
def test_normalize_tier_aliases(raw, expected):
    assert vip_pricing.normalize_tier(raw) == expected


def test_alias_resolves_to_same_price():
    assert vip_pricing.resolve("employee-profile", 30) == vip_pricing.resolve("employee", 30)


def test_list_options_shape():
    options = vip_pricing.list_options("employee-profile")
    assert options["tier"] == "employee"
    assert options["currency"] == "THB"
    assert [p["duration"] for p in options["prices"]] == [7, 30, 90, 365]

    monthly = options["prices"][1]
    assert monthly["price"] == 3600
    assert monthly["discount"] == 10
    assert monthly["original_price"] == 4000
    assert monthly["popular"] is True
    assert monthly["price_per_day"] == 120.0


def test_discounts_never_raise_the_daily_rate():
    for config in vip_pricing.VIP_PRICING.values():
        rates = [option.price_per_day for option in config.prices]
        assert rates == sorted(rates, reverse=True)
