"""Public price quote and series endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from lifecycle import LifecycleController
from pricing import PriceQuote, TierClassifier, quote, format_price
from ..lifecycle import get_controller

router = APIRouter(
    prefix="/pricing",
    tags=["Pricing"]
)

class QuoteResponse(PriceQuote):
    """Price quote with its display string."""
    display: str

class TierRow(BaseModel):
    """One row of the tier table."""
    tier: str
    min_score: Decimal
    max_score: Decimal
    multiplier: Decimal

class SeriesView(BaseModel):
    """Public view of the running series and phase."""
    current_series: Optional[int]
    current_phase: Optional[int]
    series_multiplier: Decimal
    sold_count: int
    total_nfts: int
    phase_sold_count: int
    phase_total_nfts: int
    sell_through_rate: Decimal
    projected_next_multiplier: Optional[Decimal]
    trajectory: Optional[str]
    phase_end_date: Optional[datetime]
    time_remaining_seconds: int
    is_paused: bool
    exhausted: bool

def get_classifier(request: Request) -> TierClassifier:
    return request.app.state.classifier

@router.get("/quote", response_model=QuoteResponse)
async def get_quote(
    request: Request,
    score: Decimal = Query(..., description="Item quality score"),
    tier: Optional[str] = Query(None, description="Badge tier; derived from the score when omitted"),
    controller: LifecycleController = Depends(get_controller),
    classifier: TierClassifier = Depends(get_classifier)
):
    """Price an item at the active series multiplier."""
    if tier is None:
        tier, _ = classifier.classify(score)
    result = quote(
        score,
        tier,
        series_multiplier=await controller.current_multiplier(),
        base_price_per_point=request.app.state.settings.base_price_per_point,
        classifier=classifier
    )
    return QuoteResponse(**result.model_dump(), display=format_price(result.amount))

@router.get("/tiers", response_model=List[TierRow])
async def get_tiers(classifier: TierClassifier = Depends(get_classifier)):
    """Tier bands and multipliers."""
    return classifier.table()

@router.get("/series", response_model=SeriesView)
async def get_current_series(controller: LifecycleController = Depends(get_controller)):
    """Running series, its sell-through so far and the projected next multiplier."""
    status = await controller.status()
    series = next(
        (s for s in status.series if s.series_number == status.current_series), None
    )
    phase = next(
        (p for p in status.phases
         if (p.series_number, p.phase_number) == (status.current_series, status.current_phase)),
        None
    )
    return SeriesView(
        current_series=status.current_series,
        current_phase=status.current_phase,
        series_multiplier=status.series_multiplier,
        sold_count=series.sold_count if series else 0,
        total_nfts=series.total_nfts if series else 0,
        phase_sold_count=phase.sold_count if phase else 0,
        phase_total_nfts=phase.total_nfts if phase else 0,
        sell_through_rate=status.sell_through_rate,
        projected_next_multiplier=status.projected_next_multiplier,
        trajectory=status.trajectory,
        phase_end_date=status.deadline,
        time_remaining_seconds=status.time_remaining_seconds,
        is_paused=status.is_paused,
        exhausted=status.exhausted
    )
