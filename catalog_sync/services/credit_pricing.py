"""
Credit pricing helpers

Provider prices are USD per call; the catalog bills in credits. The USD value
of one credit is configured by admins in ``credit_pricing_config``.
"""

import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Any

from catalog_sync.config import Config
from catalog_sync.models import PricingQuote, PricingType

logger = logging.getLogger(__name__)

MIN_CREDIT_COST = 1


def safe_decimal(value: Any) -> Decimal | None:
    """Safely convert a value to Decimal"""
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            return Decimal(str(value))
        if isinstance(value, str):
            cleaned = "".join(c for c in value if c.isdigit() or c in ".-")
            if cleaned:
                return Decimal(cleaned)
        return None
    except (ValueError, TypeError, ArithmeticError, InvalidOperation):
        return None


def calculate_credit_cost(price_usd: float, credit_rate: float) -> int:
    """Convert a USD price into whole credits, never less than one.

    ``max(1, ceil(price_usd / credit_rate))``, evaluated in decimal arithmetic
    so prices such as 0.003 at a rate of 0.001 give exactly 3.

    Raises:
        ValueError: If credit_rate is not positive
    """
    price = safe_decimal(price_usd) or Decimal(0)
    if price <= 0:
        return MIN_CREDIT_COST
    rate = safe_decimal(credit_rate)
    if rate is None or rate <= 0:
        raise ValueError(f"Credit rate must be positive, got {credit_rate!r}")
    return max(MIN_CREDIT_COST, math.ceil(price / rate))


def resolve_pricing(quote: PricingQuote | None) -> tuple[float, PricingType]:
    """Price per call and pricing type for a model's quote.

    A missing quote and a zero quote are both reported as free.
    """
    price = quote.unit_price if quote is not None else 0.0
    return price, PricingType.FREE if price == 0 else PricingType.FIXED


def get_active_credit_rate(store) -> float:
    """Return the active USD-per-credit rate, or Config.DEFAULT_CREDIT_RATE.

    Any lookup failure or non-positive configured value falls back to the
    default; this never raises.
    """
    try:
        rate = store.get_active_credit_rate()
    except Exception as e:
        logger.warning(
            f"⚠️ Failed to fetch credit rate, using default: ${Config.DEFAULT_CREDIT_RATE}: {e}"
        )
        return Config.DEFAULT_CREDIT_RATE

    value = safe_decimal(rate)
    if value is None or value <= 0:
        logger.warning(
            f"⚠️ No active credit config found, using default rate: ${Config.DEFAULT_CREDIT_RATE}"
        )
        return Config.DEFAULT_CREDIT_RATE
    return float(value)
