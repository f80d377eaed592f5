"""Pricing module for computing item sale prices.

Formula: price = base_price_per_point x score x tier multiplier x series multiplier

All intermediate values are exact Decimals; the amount is rounded once,
half-up, to the smallest currency unit when it is displayed.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from pydantic import BaseModel

from lifecycle.exceptions import ValidationError
from .tiers import (
    TierBand, TierClassifier, DEFAULT_TIER_BANDS,
    DEFAULT_MIN_SCORE, DEFAULT_MAX_SCORE, Number, to_decimal
)

logger = logging.getLogger(__name__)

__all__ = [
    'price', 'quote', 'format_price', 'PriceQuote',
    'TierBand', 'TierClassifier', 'DEFAULT_TIER_BANDS',
    'DEFAULT_MIN_SCORE', 'DEFAULT_MAX_SCORE',
    'DEFAULT_BASE_PRICE_PER_POINT', 'DEFAULT_SERIES_MULTIPLIER', 'CURRENCY_UNIT',
    'to_decimal'
]

DEFAULT_BASE_PRICE_PER_POINT = Decimal('0.10')
DEFAULT_SERIES_MULTIPLIER = Decimal('1.0')
CURRENCY_UNIT = Decimal('0.01')

_default_classifier = TierClassifier()

class PriceQuote(BaseModel):
    """Price with its breakdown."""
    score: Decimal
    tier: str
    tier_multiplier: Decimal
    series_multiplier: Decimal
    base_price_per_point: Decimal
    base_price: Decimal
    after_tier_multiplier: Decimal
    exact_amount: Decimal
    amount: Decimal
    amount_cents: int

def _round(amount: Decimal) -> Decimal:
    return amount.quantize(CURRENCY_UNIT, rounding=ROUND_HALF_UP)

def quote(
    score: Number,
    tier: str,
    series_multiplier: Number = DEFAULT_SERIES_MULTIPLIER,
    base_price_per_point: Number = DEFAULT_BASE_PRICE_PER_POINT,
    classifier: Optional[TierClassifier] = None
) -> PriceQuote:
    """Compute a price and its breakdown.

    Args:
        score: Item quality score
        tier: Badge tier name
        series_multiplier: Multiplier of the active series
        base_price_per_point: Currency amount per score point
        classifier: Tier table to read the tier multiplier from

    Returns:
        PriceQuote with the exact and the displayed amount

    Raises:
        ValidationError: If an input is negative or a multiplier is not positive
        NotFoundError: If the tier is unknown
    """
    classifier = classifier or _default_classifier
    score = to_decimal(score)
    series_multiplier = to_decimal(series_multiplier)
    base_price_per_point = to_decimal(base_price_per_point)

    if score < 0:
        raise ValidationError(f"Score must not be negative, got {score}")
    if series_multiplier <= 0:
        raise ValidationError(f"Series multiplier must be positive, got {series_multiplier}")
    if base_price_per_point <= 0:
        raise ValidationError(f"Base price per point must be positive, got {base_price_per_point}")

    tier_multiplier = classifier.multiplier_for(tier)

    base_price = base_price_per_point * score
    after_tier = base_price * tier_multiplier
    exact = after_tier * series_multiplier
    amount = _round(exact)

    return PriceQuote(
        score=score,
        tier=tier.upper(),
        tier_multiplier=tier_multiplier,
        series_multiplier=series_multiplier,
        base_price_per_point=base_price_per_point,
        base_price=base_price,
        after_tier_multiplier=after_tier,
        exact_amount=exact,
        amount=amount,
        amount_cents=int(amount / CURRENCY_UNIT)
    )

def price(
    score: Number,
    tier: str,
    series_multiplier: Number = DEFAULT_SERIES_MULTIPLIER,
    base_price_per_point: Number = DEFAULT_BASE_PRICE_PER_POINT,
    classifier: Optional[TierClassifier] = None
) -> Decimal:
    """Displayable price, rounded half-up to the smallest currency unit."""
    return quote(score, tier, series_multiplier, base_price_per_point, classifier).amount

def format_price(amount: Decimal) -> str:
    """Format an amount for display, e.g. $1,234.50."""
    return f"${_round(amount):,.2f}"
