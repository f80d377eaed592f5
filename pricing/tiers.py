"""Badge tier classification.

Tiers are ordered bands over the score range. Each band starts at its
``min_score`` and runs up to the next band's start; the last band runs to
``max_score`` inclusive. Scores outside the range are clamped to the
nearest band instead of being rejected.
"""

import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel

from lifecycle.exceptions import ValidationError, NotFoundError

logger = logging.getLogger(__name__)

Number = Union[int, float, str, Decimal]

DEFAULT_MIN_SCORE = Decimal('0')
DEFAULT_MAX_SCORE = Decimal('500')

class TierBand(BaseModel):
    """A badge tier starting at ``min_score``."""
    tier: str
    min_score: Decimal
    multiplier: Decimal

DEFAULT_TIER_BANDS = (
    TierBand(tier='STANDARD', min_score=Decimal('0'), multiplier=Decimal('1.00')),
    TierBand(tier='EXCEPTIONAL', min_score=Decimal('250'), multiplier=Decimal('1.10')),
    TierBand(tier='PREMIUM', min_score=Decimal('350'), multiplier=Decimal('1.25')),
    TierBand(tier='ELITE', min_score=Decimal('425'), multiplier=Decimal('1.50')),
    TierBand(tier='LEGENDARY', min_score=Decimal('470'), multiplier=Decimal('2.00')),
    TierBand(tier='MYTHIC', min_score=Decimal('490'), multiplier=Decimal('3.00')),
)

def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without binary float artifacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError(f"Not a number: {value!r}")
    try:
        result = Decimal(str(value))
    except ArithmeticError:
        raise ValidationError(f"Not a number: {value!r}")
    if not result.is_finite():
        raise ValidationError(f"Not a finite number: {value!r}")
    return result

class TierClassifier:
    """Maps quality scores to badge tiers and their price multipliers."""

    def __init__(
        self,
        bands: Iterable[TierBand] = DEFAULT_TIER_BANDS,
        min_score: Number = DEFAULT_MIN_SCORE,
        max_score: Number = DEFAULT_MAX_SCORE
    ) -> None:
        """Initialize and validate the band table.

        Args:
            bands: Tier bands ordered by ``min_score``
            min_score: Lowest score of the range
            max_score: Highest score of the range (inclusive)

        Raises:
            ValidationError: If the bands are not strictly increasing,
                do not cover the range, or multipliers decrease
        """
        self.min_score = to_decimal(min_score)
        self.max_score = to_decimal(max_score)
        self.bands: Tuple[TierBand, ...] = tuple(bands)
        self._validate()

    @classmethod
    def from_settings(cls, settings) -> 'TierClassifier':
        """Build a classifier from PricingSettings, using defaults when no tiers are configured."""
        if not settings.tiers:
            return cls(min_score=settings.min_score, max_score=settings.max_score)
        bands = [
            TierBand(tier=t.tier, min_score=t.min_score, multiplier=t.multiplier)
            for t in settings.tiers
        ]
        return cls(bands, settings.min_score, settings.max_score)

    def _validate(self) -> None:
        if self.min_score >= self.max_score:
            raise ValidationError("min_score must be below max_score")
        if not self.bands:
            raise ValidationError("At least one tier band is required")
        if self.bands[0].min_score != self.min_score:
            raise ValidationError(
                f"First tier band must start at {self.min_score}, "
                f"got {self.bands[0].min_score}"
            )

        seen = set()
        previous: Optional[TierBand] = None
        for band in self.bands:
            if band.tier in seen:
                raise ValidationError(f"Duplicate tier {band.tier}")
            seen.add(band.tier)
            if band.multiplier <= 0:
                raise ValidationError(f"Tier {band.tier} multiplier must be positive")
            if band.min_score >= self.max_score:
                raise ValidationError(
                    f"Tier {band.tier} starts at {band.min_score}, "
                    f"outside the score range"
                )
            if previous is not None:
                if band.min_score <= previous.min_score:
                    raise ValidationError(
                        f"Tier bands must be strictly increasing: "
                        f"{previous.tier} ({previous.min_score}) then "
                        f"{band.tier} ({band.min_score})"
                    )
                if band.multiplier < previous.multiplier:
                    raise ValidationError(
                        f"Tier multipliers must not decrease: "
                        f"{previous.tier} x{previous.multiplier} then "
                        f"{band.tier} x{band.multiplier}"
                    )
            previous = band

    @property
    def tiers(self) -> List[str]:
        return [band.tier for band in self.bands]

    def band_for(self, score: Number) -> TierBand:
        """Find the band for a score, clamping out-of-range scores."""
        value = to_decimal(score)
        if value < self.min_score or value > self.max_score:
            logger.debug(f"Score {value} outside [{self.min_score}, {self.max_score}], clamping")
        if value <= self.min_score:
            return self.bands[0]
        if value >= self.max_score:
            return self.bands[-1]

        match = self.bands[0]
        for band in self.bands:
            if band.min_score > value:
                break
            match = band
        return match

    def classify(self, score: Number) -> Tuple[str, Decimal]:
        """Return (tier, tier multiplier) for a score."""
        band = self.band_for(score)
        return band.tier, band.multiplier

    def multiplier_for(self, tier: str) -> Decimal:
        """Look up a tier's multiplier by name.

        Raises:
            NotFoundError: If the tier is not configured
        """
        name = tier.upper()
        for band in self.bands:
            if band.tier == name:
                return band.multiplier
        raise NotFoundError(f"Unknown tier {tier}")

    def table(self) -> List[dict]:
        """Tier table with each band's inclusive lower and exclusive upper bound."""
        rows = []
        for index, band in enumerate(self.bands):
            upper = (
                self.bands[index + 1].min_score
                if index + 1 < len(self.bands) else self.max_score
            )
            rows.append({
                'tier': band.tier,
                'min_score': band.min_score,
                'max_score': upper,
                'multiplier': band.multiplier
            })
        return rows
