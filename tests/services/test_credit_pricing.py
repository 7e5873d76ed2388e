"""
Tests for credit cost conversion and credit rate lookup
"""

from decimal import Decimal
from unittest.mock import Mock

import pytest

from catalog_sync.config import Config
from catalog_sync.models import PricingQuote, PricingType
from catalog_sync.services.credit_pricing import (
    calculate_credit_cost,
    get_active_credit_rate,
    resolve_pricing,
    safe_decimal,
)


class TestCalculateCreditCost:
    @pytest.mark.parametrize(
        "price, rate, expected",
        [
            (0.05, 0.025, 2),
            (0.051, 0.025, 3),
            (0.003, 0.001, 3),
            (0.0001, 0.025, 1),
            (0, 0.025, 1),
            (1.0, 0.025, 40),
        ],
    )
    def test_ceil_with_minimum_of_one(self, price, rate, expected):
        assert calculate_credit_cost(price, rate) == expected

    def test_free_model_costs_one_credit_regardless_of_rate(self):
        assert calculate_credit_cost(0, 0) == 1

    @pytest.mark.parametrize("rate", [0, -0.01, None])
    def test_rejects_non_positive_rate(self, rate):
        with pytest.raises(ValueError):
            calculate_credit_cost(0.05, rate)


class TestResolvePricing:
    def test_missing_quote_is_free(self):
        assert resolve_pricing(None) == (0.0, PricingType.FREE)

    def test_zero_quote_is_free(self):
        quote = PricingQuote(endpoint_id="a", unit_price=0)
        assert resolve_pricing(quote) == (0.0, PricingType.FREE)

    def test_priced_quote_is_fixed(self):
        quote = PricingQuote(endpoint_id="a", unit_price=0.05, unit="image")
        assert resolve_pricing(quote) == (0.05, PricingType.FIXED)


class TestGetActiveCreditRate:
    def test_configured_rate(self):
        store = Mock()
        store.get_active_credit_rate.return_value = "0.01"
        assert get_active_credit_rate(store) == pytest.approx(0.01)

    @pytest.mark.parametrize("value", [None, 0, -1])
    def test_missing_or_invalid_falls_back(self, value):
        store = Mock()
        store.get_active_credit_rate.return_value = value
        assert get_active_credit_rate(store) == Config.DEFAULT_CREDIT_RATE

    def test_lookup_failure_falls_back(self):
        store = Mock()
        store.get_active_credit_rate.side_effect = RuntimeError("db down")
        assert get_active_credit_rate(store) == Config.DEFAULT_CREDIT_RATE


def test_safe_decimal():
    assert safe_decimal(0.1) == Decimal("0.1")
    assert safe_decimal("$1.50") == Decimal("1.50")
    assert safe_decimal(True) is None
    assert safe_decimal("n/a") is None
