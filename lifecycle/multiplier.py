"""Series multiplier rule.

Each series has a baseline multiplier by ordinal. The realized multiplier
of series n > 1 depends on how much of series n - 1 sold:

    sell-through >= 0.8  ->  baseline + 0.5
    sell-through <  0.5  ->  max(1.0, baseline - 0.25)
    otherwise            ->  baseline
"""

from decimal import Decimal
from typing import Dict

from .exceptions import NotFoundError

SERIES_BASELINES: Dict[int, Decimal] = {
    1: Decimal('1.0'),
    2: Decimal('1.5'),
    3: Decimal('2.0'),
    4: Decimal('2.5'),
}

FIRST_SERIES_MULTIPLIER = SERIES_BASELINES[1]
MULTIPLIER_FLOOR = Decimal('1.0')

HIGH_SELL_THROUGH = Decimal('0.8')
LOW_SELL_THROUGH = Decimal('0.5')
HIGH_DEMAND_BONUS = Decimal('0.5')
LOW_DEMAND_PENALTY = Decimal('0.25')

def sell_through_rate(sold_count: int, total_nfts: int) -> Decimal:
    """Fraction of a series sold, 0 for an empty series, clamped to [0, 1]."""
    if total_nfts <= 0:
        return Decimal('0')
    rate = Decimal(sold_count) / Decimal(total_nfts)
    return min(Decimal('1'), max(Decimal('0'), rate))

def baseline_multiplier(series_number: int) -> Decimal:
    try:
        return SERIES_BASELINES[series_number]
    except KeyError:
        raise NotFoundError(f"Series {series_number} does not exist")

def next_series_multiplier(series_number: int, previous_sell_through: Decimal) -> Decimal:
    """Realized multiplier for ``series_number`` given the previous series' sell-through."""
    baseline = baseline_multiplier(series_number)
    if series_number == 1:
        return FIRST_SERIES_MULTIPLIER
    if previous_sell_through >= HIGH_SELL_THROUGH:
        return baseline + HIGH_DEMAND_BONUS
    if previous_sell_through < LOW_SELL_THROUGH:
        return max(MULTIPLIER_FLOOR, baseline - LOW_DEMAND_PENALTY)
    return baseline

def trajectory_label(series_number: int, projected: Decimal) -> str:
    """Compare a projected multiplier with the baseline of ``series_number``.

    Returns ``INCREASE``, ``STEADY`` or ``DECREASE``.
    """
    baseline = baseline_multiplier(series_number)
    if projected > baseline:
        return 'INCREASE'
    if projected < baseline:
        return 'DECREASE'
    return 'STEADY'
