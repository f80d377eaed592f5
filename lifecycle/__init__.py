"""Pricing lifecycle module.

This module drives the marketplace through 4 series of 5 timed phases:
- Seeding the series and phase records
- Advancing phases and rolling over to the next series
- Setting each new series' multiplier from the previous sell-through
- Pausing and resuming the active phase timer
- Phase duration and legacy growth-percent configuration
- Recording sales against the active series and phase

Every mutation runs as one store transaction that re-reads the state,
validates the transition and writes all affected rows together.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Tuple, Union

from pydantic import BaseModel

from audit import AuditLog
from .clock import PhaseClock, PauseAccounting, utcnow
from .exceptions import (
    LifecycleError, ValidationError, StateConflictError,
    LifecycleExhaustedError, NotFoundError, PersistenceError
)
from .models import (
    SERIES_COUNT, PHASES_PER_SERIES, MAX_PHASE_DAYS, SeriesStatus, PhaseStatus,
    Series, Phase, LifecyclePointer, LifecycleSettings, LifecycleState,
    AdvanceResult, LifecycleStatus, SeriesProgress, PhaseProgress
)
from .multiplier import (
    sell_through_rate, next_series_multiplier, baseline_multiplier,
    trajectory_label, FIRST_SERIES_MULTIPLIER
)
from .store import (
    LifecycleStore, LifecycleTransaction, InMemoryLifecycleStore,
    PostgresLifecycleStore
)

logger = logging.getLogger(__name__)

__all__ = [
    'LifecycleController', 'PauseResult',
    'LifecycleError', 'ValidationError', 'StateConflictError',
    'LifecycleExhaustedError', 'NotFoundError', 'PersistenceError',
    'SeriesStatus', 'PhaseStatus', 'Series', 'Phase', 'LifecyclePointer',
    'LifecycleSettings', 'LifecycleState', 'AdvanceResult', 'LifecycleStatus',
    'PhaseClock', 'PauseAccounting', 'LifecycleStore', 'InMemoryLifecycleStore',
    'PostgresLifecycleStore', 'SERIES_COUNT', 'PHASES_PER_SERIES', 'MAX_PHASE_DAYS'
]

SECONDS_PER_DAY = 86400

Admin = Optional[Dict[str, Any]]

class PauseResult(BaseModel):
    """Phase timer state after a pause or resume."""
    series_number: int
    phase_number: int
    is_paused: bool
    paused_at: Optional[datetime]
    pause_duration_ms: Optional[int] = None
    total_paused_ms: int
    time_remaining_seconds: int

def _days_to_seconds(duration_days: Union[int, float, str, Decimal]) -> int:
    try:
        days = Decimal(str(duration_days))
    except ArithmeticError:
        raise ValidationError(f"Duration must be a number of days, got {duration_days!r}")
    if not days.is_finite() or days <= 0:
        raise ValidationError("Duration must be a positive number of days")
    if days > MAX_PHASE_DAYS:
        raise ValidationError(f"Duration must not exceed {MAX_PHASE_DAYS} days")
    seconds = int(days * SECONDS_PER_DAY)
    if seconds < 1:
        raise ValidationError("Duration must be at least one second")
    return seconds

def _split_inventory(total: int, parts: int):
    """Split inventory evenly, remainder on the last part."""
    share = total // parts
    return [share] * (parts - 1) + [total - share * (parts - 1)]

class LifecycleController:
    """Owns the series/phase state machine and the lifecycle pointer."""

    def __init__(
        self,
        store: Optional[LifecycleStore] = None,
        audit: Optional[AuditLog] = None,
        clock: Optional[Callable[[], datetime]] = None,
        settings=None
    ) -> None:
        """Initialize the controller.

        Args:
            store: Lifecycle store. Defaults to the Postgres store on the shared pool.
            audit: Audit log for admin actions
            clock: Returns the current aware datetime
            settings: PricingSettings. Defaults to the loaded settings.conf.
        """
        if settings is None:
            from config import pricing_settings
            settings = pricing_settings
        self.settings = settings
        self.store = store or PostgresLifecycleStore()
        self.audit = audit or AuditLog()
        self.clock = clock or utcnow

    def _next_pointer(self, state: LifecycleState, now: datetime,
                      series_number: Optional[int], phase_number: Optional[int]) -> LifecyclePointer:
        return LifecyclePointer(
            series_number=series_number,
            phase_number=phase_number,
            version=state.pointer.version + 1,
            updated_at=now
        )

    def _require_active(self, state: LifecycleState) -> Tuple[Series, Phase]:
        series = state.active_series()
        phase = state.active_phase()
        if series is None or phase is None:
            if state.exhausted:
                raise LifecycleExhaustedError("Lifecycle exhausted: all series have completed")
            if not state.initialized:
                raise StateConflictError("Lifecycle has not been initialized")
            raise StateConflictError("No active phase")
        if phase.series_number != series.series_number:
            raise StateConflictError(
                f"Active phase belongs to series {phase.series_number}, "
                f"but series {series.series_number} is active"
            )
        pointer = state.pointer
        if (pointer.series_number, pointer.phase_number) != phase.key:
            logger.warning(
                f"Lifecycle pointer ({pointer.series_number}, {pointer.phase_number}) "
                f"disagrees with active phase {phase.key}, it will be rewritten"
            )
        return series, phase

    async def initialize(self, admin: Admin = None) -> LifecycleState:
        """Seed all series and phases and activate series 1 phase 1.

        Calling it again on a seeded store changes nothing.
        """
        now = self.clock()
        async with self.store.transaction() as tx:
            state = await tx.load()
            if state.initialized:
                logger.info("Lifecycle already initialized, nothing to seed")
                return state

            phase_totals = _split_inventory(self.settings.series_total_nfts, PHASES_PER_SERIES)
            for series_number in range(1, SERIES_COUNT + 1):
                first = series_number == 1
                await tx.save_series(Series(
                    series_number=series_number,
                    status=SeriesStatus.ACTIVE if first else SeriesStatus.PENDING,
                    multiplier=FIRST_SERIES_MULTIPLIER if first else baseline_multiplier(series_number),
                    start_date=now if first else None,
                    total_nfts=self.settings.series_total_nfts
                ))
                for phase_number in range(1, PHASES_PER_SERIES + 1):
                    active = first and phase_number == 1
                    await tx.save_phase(Phase(
                        series_number=series_number,
                        phase_number=phase_number,
                        status=PhaseStatus.ACTIVE if active else PhaseStatus.PENDING,
                        duration_seconds=self.settings.default_phase_seconds,
                        start_date=now if active else None,
                        total_nfts=phase_totals[phase_number - 1]
                    ))

            await tx.save_settings(LifecycleSettings(
                series_growth_percent=self.settings.series_growth_percent
            ))
            await tx.save_pointer(self._next_pointer(state, now, 1, 1), state.pointer.version)
            state = await tx.load()

        logger.info(
            f"Lifecycle initialized: {SERIES_COUNT} series x {PHASES_PER_SERIES} phases, "
            f"series 1 phase 1 active"
        )
        self.audit.record('LIFECYCLE_INITIALIZE', {'started_at': now}, admin)
        return state

    async def advance(self, expected_version: Optional[int] = None, admin: Admin = None) -> AdvanceResult:
        """Complete the active phase and activate the next one.

        At the last phase of a series the series is closed with its
        sell-through rate and the next series opens at phase 1 with a
        multiplier derived from that rate.

        Args:
            expected_version: Pointer version the caller last saw. A mismatch
                means someone else advanced first.
            admin: Acting admin, for the audit log

        Returns:
            AdvanceResult naming the new series and phase

        Raises:
            StateConflictError: No active phase, stale version, or a
                concurrent advance won
            LifecycleExhaustedError: The final phase completed (the
                completion is committed) or had already completed
        """
        now = self.clock()
        exhausted_rate: Optional[Decimal] = None

        async with self.store.transaction() as tx:
            state = await tx.load()
            if expected_version is not None and expected_version != state.pointer.version:
                raise StateConflictError(
                    f"Lifecycle is at version {state.pointer.version}, "
                    f"expected {expected_version}"
                )
            series, phase = self._require_active(state)

            completed = PauseAccounting.close(phase, now).model_copy(update={
                'status': PhaseStatus.COMPLETED,
                'end_date': now
            })
            await tx.save_phase(completed)

            if phase.phase_number < PHASES_PER_SERIES:
                next_phase = state.get_phase(series.series_number, phase.phase_number + 1)
                if next_phase is None:
                    raise NotFoundError(
                        f"Series {series.series_number} has no phase {phase.phase_number + 1}"
                    )
                await tx.save_phase(self._activate_phase(next_phase, now))
                pointer = self._next_pointer(state, now, series.series_number, next_phase.phase_number)
                await tx.save_pointer(pointer, state.pointer.version)
                result = AdvanceResult(
                    series_number=series.series_number,
                    phase_number=next_phase.phase_number,
                    series_multiplier=series.multiplier,
                    previous_series_number=series.series_number,
                    previous_phase_number=phase.phase_number,
                    version=pointer.version
                )
            else:
                rate = sell_through_rate(series.sold_count, series.total_nfts)
                await tx.save_series(series.model_copy(update={
                    'status': SeriesStatus.COMPLETED,
                    'end_date': now,
                    'sell_through_rate': rate
                }))

                if series.series_number == SERIES_COUNT:
                    await tx.save_pointer(
                        self._next_pointer(state, now, None, None), state.pointer.version
                    )
                    exhausted_rate = rate
                    result = None
                else:
                    result = await self._open_next_series(tx, state, series, phase, rate, now)

        if exhausted_rate is not None:
            logger.info(
                f"Final phase completed, series {SERIES_COUNT} closed with "
                f"sell-through {exhausted_rate}; lifecycle exhausted"
            )
            self.audit.record('LIFECYCLE_EXHAUSTED', {
                'series': SERIES_COUNT,
                'sell_through_rate': exhausted_rate
            }, admin)
            raise LifecycleExhaustedError(
                f"Series {SERIES_COUNT} completed with sell-through {exhausted_rate}; "
                "no further phases"
            )

        logger.info(
            f"Advanced from series {result.previous_series_number} phase {result.previous_phase_number} "
            f"to series {result.series_number} phase {result.phase_number} "
            f"(multiplier {result.series_multiplier})"
        )
        self.audit.record('PHASE_ADVANCE', result.model_dump(), admin)
        return result

    def _activate_phase(self, phase: Phase, now: datetime) -> Phase:
        return PauseAccounting.reset(phase).model_copy(update={
            'status': PhaseStatus.ACTIVE,
            'start_date': now,
            'end_date': None
        })

    async def _open_next_series(self, tx: LifecycleTransaction, state: LifecycleState,
                                series: Series, phase: Phase, rate: Decimal,
                                now: datetime) -> AdvanceResult:
        next_number = series.series_number + 1
        next_series = state.get_series(next_number)
        first_phase = state.get_phase(next_number, 1)
        if next_series is None or first_phase is None:
            raise NotFoundError(f"Series {next_number} is not seeded")

        multiplier = next_series_multiplier(next_number, rate)
        await tx.save_series(next_series.model_copy(update={
            'status': SeriesStatus.ACTIVE,
            'start_date': now,
            'multiplier': multiplier
        }))
        await tx.save_phase(self._activate_phase(first_phase, now))
        pointer = self._next_pointer(state, now, next_number, 1)
        await tx.save_pointer(pointer, state.pointer.version)

        logger.info(
            f"Series {series.series_number} closed with sell-through {rate}, "
            f"series {next_number} opens at x{multiplier}"
        )
        return AdvanceResult(
            series_number=next_number,
            phase_number=1,
            series_multiplier=multiplier,
            rolled_series=True,
            previous_series_number=series.series_number,
            previous_phase_number=phase.phase_number,
            previous_sell_through_rate=rate,
            version=pointer.version
        )

    async def pause(self, admin: Admin = None) -> PauseResult:
        """Pause the active phase timer.

        Raises:
            StateConflictError: If already paused or nothing is active
        """
        now = self.clock()
        async with self.store.transaction() as tx:
            state = await tx.load()
            _, phase = self._require_active(state)
            paused = PauseAccounting.pause(phase, now)
            await tx.save_phase(paused)
            await tx.save_pointer(
                self._next_pointer(state, now, phase.series_number, phase.phase_number),
                state.pointer.version
            )

        logger.info(f"Phase timer paused at series {phase.series_number} phase {phase.phase_number}")
        self.audit.record('PHASE_PAUSE', {'paused_at': now}, admin)
        return PauseResult(
            series_number=paused.series_number,
            phase_number=paused.phase_number,
            is_paused=True,
            paused_at=paused.paused_at,
            total_paused_ms=paused.total_paused_ms,
            time_remaining_seconds=int(PhaseClock.time_remaining(paused, now).total_seconds())
        )

    async def resume(self, admin: Admin = None) -> PauseResult:
        """Resume the active phase timer, pushing its deadline out by the pause.

        Raises:
            StateConflictError: If not paused or nothing is active
        """
        now = self.clock()
        async with self.store.transaction() as tx:
            state = await tx.load()
            _, phase = self._require_active(state)
            resumed = PauseAccounting.resume(phase, now)
            await tx.save_phase(resumed)
            await tx.save_pointer(
                self._next_pointer(state, now, phase.series_number, phase.phase_number),
                state.pointer.version
            )

        pause_ms = resumed.total_paused_ms - phase.total_paused_ms
        logger.info(
            f"Phase timer resumed at series {phase.series_number} phase {phase.phase_number} "
            f"after {pause_ms} ms"
        )
        self.audit.record('PHASE_RESUME', {
            'pause_duration_ms': pause_ms,
            'total_paused_ms': resumed.total_paused_ms
        }, admin)
        return PauseResult(
            series_number=resumed.series_number,
            phase_number=resumed.phase_number,
            is_paused=False,
            paused_at=None,
            pause_duration_ms=pause_ms,
            total_paused_ms=resumed.total_paused_ms,
            time_remaining_seconds=int(PhaseClock.time_remaining(resumed, now).total_seconds())
        )

    async def set_phase_duration(
        self,
        phase_number: int,
        duration_days: Union[int, float, str, Decimal],
        series_number: Optional[int] = None,
        admin: Admin = None
    ) -> Phase:
        """Set the configured duration of a phase.

        Args:
            phase_number: Phase ordinal within its series (1..5)
            duration_days: Positive number of days, stored as whole seconds
            series_number: Series of the phase. Defaults to the active series.
            admin: Acting admin, for the audit log

        Raises:
            ValidationError: If the duration is not positive
            NotFoundError: If the series or phase does not exist
            StateConflictError: If the phase has already completed
        """
        seconds = _days_to_seconds(duration_days)
        if not 1 <= phase_number <= PHASES_PER_SERIES:
            raise NotFoundError(f"Phase {phase_number} does not exist")
        if series_number is not None and not 1 <= series_number <= SERIES_COUNT:
            raise NotFoundError(f"Series {series_number} does not exist")

        now = self.clock()
        async with self.store.transaction() as tx:
            state = await tx.load()
            if series_number is None:
                active = state.active_series()
                if active is None:
                    raise NotFoundError("No active series; a series number is required")
                series_number = active.series_number

            phase = state.get_phase(series_number, phase_number)
            if phase is None:
                raise NotFoundError(f"Series {series_number} phase {phase_number} not found")
            if phase.status == PhaseStatus.COMPLETED:
                raise StateConflictError(
                    f"Series {series_number} phase {phase_number} has already completed"
                )

            updated = phase.model_copy(update={'duration_seconds': seconds})
            await tx.save_phase(updated)
            await tx.save_pointer(
                self._next_pointer(state, now, state.pointer.series_number, state.pointer.phase_number),
                state.pointer.version
            )

        logger.info(
            f"Series {series_number} phase {phase_number} duration set to "
            f"{seconds} seconds (was {phase.duration_seconds})"
        )
        self.audit.record('PHASE_DURATION_UPDATE', {
            'series': series_number,
            'phase': phase_number,
            'old_duration_seconds': phase.duration_seconds,
            'new_duration_seconds': seconds
        }, admin)
        return updated

    async def set_series_growth(self, percent: Union[int, float, str, Decimal],
                                admin: Admin = None) -> LifecycleSettings:
        """Set the legacy ladder growth percent (0..100).

        Raises:
            ValidationError: If percent is outside [0, 100]
        """
        try:
            value = Decimal(str(percent))
        except ArithmeticError:
            raise ValidationError(f"Percent must be a number, got {percent!r}")
        if not value.is_finite() or not Decimal('0') <= value <= Decimal('100'):
            raise ValidationError("Percent must be between 0 and 100")

        now = self.clock()
        async with self.store.transaction() as tx:
            state = await tx.load()
            settings = state.settings.model_copy(update={'series_growth_percent': value})
            await tx.save_settings(settings)
            await tx.save_pointer(
                self._next_pointer(state, now, state.pointer.series_number, state.pointer.phase_number),
                state.pointer.version
            )

        logger.info(f"Series growth percent set to {value}%")
        self.audit.record('PHASE_INCREASE_PERCENT_UPDATE', {'new_percent': value}, admin)
        return settings

    async def record_sale(self, amount: Union[int, float, str, Decimal], quantity: int = 1) -> Series:
        """Count a completed purchase against the active series and phase.

        Raises:
            ValidationError: If amount is negative or quantity below 1
            StateConflictError: If nothing is active or the inventory is sold out
        """
        try:
            amount = Decimal(str(amount))
        except ArithmeticError:
            raise ValidationError(f"Amount must be a number, got {amount!r}")
        if not amount.is_finite() or amount < 0:
            raise ValidationError("Amount must not be negative")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError("Quantity must be a positive integer")

        now = self.clock()
        async with self.store.transaction() as tx:
            state = await tx.load()
            series, phase = self._require_active(state)
            if series.sold_count + quantity > series.total_nfts:
                raise StateConflictError(f"Series {series.series_number} is sold out")
            if phase.sold_count + quantity > phase.total_nfts:
                raise StateConflictError(
                    f"Series {series.series_number} phase {phase.phase_number} is sold out"
                )
            updated = series.model_copy(update={
                'sold_count': series.sold_count + quantity,
                'revenue': series.revenue + amount
            })
            await tx.save_series(updated)
            await tx.save_phase(phase.model_copy(update={'sold_count': phase.sold_count + quantity}))
            await tx.save_pointer(
                self._next_pointer(state, now, series.series_number, phase.phase_number),
                state.pointer.version
            )

        logger.debug(
            f"Recorded sale of {quantity} for {amount} in series {series.series_number} "
            f"phase {phase.phase_number}"
        )
        return updated

    async def status(self, now: Optional[datetime] = None) -> LifecycleStatus:
        """Current series, phase, remaining time and the full roster."""
        now = now or self.clock()
        state = await self.store.snapshot()
        series = state.active_series()
        phase = state.active_phase()

        sell_through = Decimal('0')
        projected = trajectory = None
        if series:
            sell_through = sell_through_rate(series.sold_count, series.total_nfts)
            if series.series_number < SERIES_COUNT:
                projected = next_series_multiplier(series.series_number + 1, sell_through)
                trajectory = trajectory_label(series.series_number + 1, projected)

        return LifecycleStatus(
            initialized=state.initialized,
            exhausted=state.exhausted,
            current_series=series.series_number if series else None,
            current_phase=phase.phase_number if phase else None,
            series_multiplier=series.multiplier if series else FIRST_SERIES_MULTIPLIER,
            sell_through_rate=sell_through,
            projected_next_multiplier=projected,
            trajectory=trajectory,
            time_remaining_seconds=(
                int(PhaseClock.time_remaining(phase, now).total_seconds()) if phase else 0
            ),
            deadline=PhaseClock.deadline(phase) if phase else None,
            is_paused=phase.is_paused if phase else False,
            series_growth_percent=state.settings.series_growth_percent,
            version=state.pointer.version,
            series=[SeriesProgress(**s.model_dump()) for s in state.series],
            phases=[
                PhaseProgress(
                    **p.model_dump(),
                    duration_days=Decimal(p.duration_seconds) / SECONDS_PER_DAY,
                    time_remaining_seconds=int(PhaseClock.time_remaining(p, now).total_seconds())
                )
                for p in state.phases
            ]
        )

    async def current_multiplier(self) -> Decimal:
        """Multiplier of the active series, 1.0 when none is active."""
        state = await self.store.snapshot()
        series = state.active_series()
        return series.multiplier if series else FIRST_SERIES_MULTIPLIER

    async def get_pointer(self) -> LifecyclePointer:
        """The active series/phase pointer and its version."""
        state = await self.store.snapshot()
        return state.pointer
