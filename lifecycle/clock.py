"""Phase timing: remaining time and pause accounting.

A phase's effective deadline is ``start + duration + total paused``.
While paused the remaining time is frozen at the pause instant, so pausing
never moves the deadline closer and the unpaused time a phase spends
active always adds up to its configured duration.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from .exceptions import StateConflictError
from .models import Phase, PhaseStatus

logger = logging.getLogger(__name__)

ZERO = timedelta(0)

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class PhaseClock:
    """Derives remaining time for a phase. Never mutates."""

    @staticmethod
    def nominal_end(phase: Phase) -> Optional[datetime]:
        if phase.start_date is None:
            return None
        return phase.start_date + phase.duration

    @classmethod
    def deadline(cls, phase: Phase) -> Optional[datetime]:
        """Effective deadline, or None while paused or not started."""
        end = cls.nominal_end(phase)
        if end is None or phase.is_paused:
            return None
        return end + phase.total_paused

    @classmethod
    def time_remaining(cls, phase: Phase, now: Optional[datetime] = None) -> timedelta:
        """Remaining time of a phase, floored at zero.

        Pending phases report their full duration and completed phases zero.
        """
        if phase.status == PhaseStatus.COMPLETED:
            return ZERO
        end = cls.nominal_end(phase)
        if end is None:
            return phase.duration

        if phase.is_paused and phase.paused_at is not None:
            remaining = end + phase.total_paused - phase.paused_at
        else:
            remaining = end + phase.total_paused - (now or utcnow())
        return max(ZERO, remaining)

    @classmethod
    def is_expired(cls, phase: Phase, now: Optional[datetime] = None) -> bool:
        """True when an active, unpaused phase has no time left."""
        if phase.status != PhaseStatus.ACTIVE or phase.is_paused:
            return False
        return cls.time_remaining(phase, now) == ZERO

def _elapsed_ms(since: datetime, now: datetime) -> int:
    # Clock skew must never shrink the accumulated pause
    return max(0, int((now - since) / timedelta(milliseconds=1)))

class PauseAccounting:
    """Pause bookkeeping on a phase record. Returns updated copies."""

    @staticmethod
    def pause(phase: Phase, now: datetime) -> Phase:
        """Freeze the phase timer.

        Raises:
            StateConflictError: If the phase is not active or already paused
        """
        if phase.status != PhaseStatus.ACTIVE:
            raise StateConflictError(
                f"Phase {phase.series_number}.{phase.phase_number} is not active"
            )
        if phase.is_paused:
            raise StateConflictError("Phase timer is already paused")
        return phase.model_copy(update={'is_paused': True, 'paused_at': now})

    @staticmethod
    def resume(phase: Phase, now: datetime) -> Phase:
        """Restart the phase timer, adding the pause to the accumulated total.

        Raises:
            StateConflictError: If the phase is not active or not paused
        """
        if phase.status != PhaseStatus.ACTIVE:
            raise StateConflictError(
                f"Phase {phase.series_number}.{phase.phase_number} is not active"
            )
        if not phase.is_paused:
            raise StateConflictError("Phase timer is not paused")
        return PauseAccounting.close(phase, now)

    @staticmethod
    def close(phase: Phase, now: datetime) -> Phase:
        """Roll an open pause into the total when a phase completes."""
        if not phase.is_paused:
            return phase
        paused_at = phase.paused_at or now
        return phase.model_copy(update={
            'is_paused': False,
            'paused_at': None,
            'total_paused_ms': phase.total_paused_ms + _elapsed_ms(paused_at, now)
        })

    @staticmethod
    def reset(phase: Phase) -> Phase:
        """Clear pause state on a newly activated phase."""
        return phase.model_copy(update={
            'is_paused': False,
            'paused_at': None,
            'total_paused_ms': 0
        })
