"""Typed view over the pricing lifecycle settings.

Every default the lifecycle engine relies on is resolved here once, so
call sites never chain their own fallbacks.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from lifecycle.models import MAX_PHASE_DAYS

class TierBandSetting(BaseModel):
    """One configured badge tier band."""
    tier: str
    min_score: Decimal
    multiplier: Decimal

class PricingSettings(BaseModel):
    """Validated pricing lifecycle configuration."""
    db_url: str
    admin_token_secret: str = ''
    base_price_per_point: Decimal = Field(gt=0)
    default_phase_days: Decimal = Field(gt=0, le=MAX_PHASE_DAYS)
    series_total_nfts: int = Field(ge=0)
    series_growth_percent: Decimal = Field(ge=0, le=100)
    scheduler_interval: int = Field(ge=1)
    min_score: Decimal
    max_score: Decimal
    tiers: Optional[List[TierBandSetting]] = None

    @property
    def default_phase_seconds(self) -> int:
        """Configured phase duration in whole seconds."""
        return int(self.default_phase_days * 86400)

    @classmethod
    def from_conf(cls, settings: Dict[str, Any]) -> 'PricingSettings':
        """Build from the dict returned by load_settings_conf."""
        data = dict(settings)
        tiers = data.pop('tiers', None)
        if tiers is not None:
            data['tiers'] = [
                TierBandSetting(tier=name, min_score=min_score, multiplier=multiplier)
                for name, min_score, multiplier in tiers
            ]
        return cls(**data)
