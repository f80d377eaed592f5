"""Series, phase and pointer records of the pricing lifecycle."""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

SERIES_COUNT = 4
PHASES_PER_SERIES = 5
MAX_PHASE_DAYS = 3650

class SeriesStatus(str, Enum):
    PENDING = 'PENDING'
    ACTIVE = 'ACTIVE'
    COMPLETED = 'COMPLETED'

class PhaseStatus(str, Enum):
    PENDING = 'PENDING'
    ACTIVE = 'ACTIVE'
    COMPLETED = 'COMPLETED'

class Series(BaseModel):
    """One of the sequential promotional generations."""
    series_number: int = Field(ge=1, le=SERIES_COUNT)
    status: SeriesStatus = SeriesStatus.PENDING
    multiplier: Decimal = Decimal('1.0')
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    total_nfts: int = Field(default=0, ge=0)
    sold_count: int = Field(default=0, ge=0)
    sell_through_rate: Optional[Decimal] = None
    revenue: Decimal = Decimal('0')

class Phase(BaseModel):
    """A timed sub-period of a series."""
    series_number: int = Field(ge=1, le=SERIES_COUNT)
    phase_number: int = Field(ge=1, le=PHASES_PER_SERIES)
    status: PhaseStatus = PhaseStatus.PENDING
    duration_seconds: int = Field(gt=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_paused: bool = False
    paused_at: Optional[datetime] = None
    total_paused_ms: int = Field(default=0, ge=0)
    total_nfts: int = Field(default=0, ge=0)
    sold_count: int = Field(default=0, ge=0)

    @property
    def key(self):
        return (self.series_number, self.phase_number)

    @property
    def duration(self) -> timedelta:
        return timedelta(seconds=self.duration_seconds)

    @property
    def total_paused(self) -> timedelta:
        return timedelta(milliseconds=self.total_paused_ms)

class LifecyclePointer(BaseModel):
    """Names the active series and phase.

    ``version`` increases with every committed mutation and guards
    against concurrent writers.
    """
    series_number: Optional[int] = None
    phase_number: Optional[int] = None
    version: int = 0
    updated_at: Optional[datetime] = None

class LifecycleSettings(BaseModel):
    series_growth_percent: Decimal = Decimal('7.5')

class LifecycleState(BaseModel):
    """Consistent snapshot of every lifecycle record."""
    series: List[Series] = Field(default_factory=list)
    phases: List[Phase] = Field(default_factory=list)
    pointer: LifecyclePointer = Field(default_factory=LifecyclePointer)
    settings: LifecycleSettings = Field(default_factory=LifecycleSettings)

    @property
    def initialized(self) -> bool:
        return bool(self.series)

    def get_series(self, series_number: int) -> Optional[Series]:
        for series in self.series:
            if series.series_number == series_number:
                return series
        return None

    def get_phase(self, series_number: int, phase_number: int) -> Optional[Phase]:
        for phase in self.phases:
            if phase.series_number == series_number and phase.phase_number == phase_number:
                return phase
        return None

    def phases_of(self, series_number: int) -> List[Phase]:
        return sorted(
            (p for p in self.phases if p.series_number == series_number),
            key=lambda p: p.phase_number
        )

    def active_series(self) -> Optional[Series]:
        return next((s for s in self.series if s.status == SeriesStatus.ACTIVE), None)

    def active_phase(self) -> Optional[Phase]:
        return next((p for p in self.phases if p.status == PhaseStatus.ACTIVE), None)

    @property
    def exhausted(self) -> bool:
        return self.initialized and all(s.status == SeriesStatus.COMPLETED for s in self.series)

class AdvanceResult(BaseModel):
    """Outcome of a successful advance."""
    series_number: int
    phase_number: int
    series_multiplier: Decimal
    rolled_series: bool = False
    previous_series_number: int
    previous_phase_number: int
    previous_sell_through_rate: Optional[Decimal] = None
    version: int

class SeriesProgress(BaseModel):
    series_number: int
    status: SeriesStatus
    multiplier: Decimal
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    total_nfts: int
    sold_count: int
    sell_through_rate: Optional[Decimal]
    revenue: Decimal

class PhaseProgress(BaseModel):
    series_number: int
    phase_number: int
    status: PhaseStatus
    duration_seconds: int
    duration_days: Decimal
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    is_paused: bool
    paused_at: Optional[datetime]
    total_paused_ms: int
    total_nfts: int
    sold_count: int
    time_remaining_seconds: int

class LifecycleStatus(BaseModel):
    """Read-only view returned by the status query."""
    initialized: bool
    exhausted: bool
    current_series: Optional[int]
    current_phase: Optional[int]
    series_multiplier: Decimal
    sell_through_rate: Decimal = Decimal('0')
    projected_next_multiplier: Optional[Decimal] = None
    trajectory: Optional[str] = None
    time_remaining_seconds: int
    deadline: Optional[datetime]
    is_paused: bool
    series_growth_percent: Decimal
    version: int
    series: List[SeriesProgress]
    phases: List[PhaseProgress]
