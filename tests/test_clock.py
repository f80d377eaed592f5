"""Tests for phase timing and pause accounting."""

from datetime import datetime, timedelta, timezone

import pytest

from lifecycle import Phase, PhaseStatus, PhaseClock, PauseAccounting, StateConflictError

START = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
WEEK = 7 * 86400

def active_phase(**kwargs) -> Phase:
    fields = {
        'series_number': 1,
        'phase_number': 1,
        'status': PhaseStatus.ACTIVE,
        'duration_seconds': WEEK,
        'start_date': START
    }
    fields.update(kwargs)
    return Phase(**fields)

def test_time_remaining_counts_down():
    """Test remaining time of a running phase."""
    phase = active_phase()
    assert PhaseClock.time_remaining(phase, START) == timedelta(days=7)
    assert PhaseClock.time_remaining(phase, START + timedelta(days=3)) == timedelta(days=4)
    assert PhaseClock.deadline(phase) == START + timedelta(days=7)

def test_time_remaining_floors_at_zero():
    """Test that an overdue phase reports zero."""
    phase = active_phase()
    assert PhaseClock.time_remaining(phase, START + timedelta(days=9)) == timedelta(0)
    assert PhaseClock.is_expired(phase, START + timedelta(days=9))
    assert not PhaseClock.is_expired(phase, START + timedelta(days=6))

def test_pending_and_completed_phases():
    """Test remaining time outside the active state."""
    pending = Phase(series_number=1, phase_number=2, duration_seconds=3600)
    assert PhaseClock.time_remaining(pending, START) == timedelta(hours=1)
    assert PhaseClock.deadline(pending) is None

    completed = active_phase(status=PhaseStatus.COMPLETED, end_date=START)
    assert PhaseClock.time_remaining(completed, START) == timedelta(0)
    assert not PhaseClock.is_expired(completed, START + timedelta(days=30))

def test_remaining_time_frozen_while_paused():
    """Test that time stops while the phase is paused."""
    phase = PauseAccounting.pause(active_phase(), START + timedelta(days=1))

    for later in (timedelta(days=1), timedelta(days=4), timedelta(days=30)):
        assert PhaseClock.time_remaining(phase, START + later) == timedelta(days=6)
    assert PhaseClock.deadline(phase) is None
    assert not PhaseClock.is_expired(phase, START + timedelta(days=30))

def test_pause_resume_shifts_deadline():
    """Test that a pause of length d moves the deadline by d."""
    phase = active_phase()
    deadline = PhaseClock.deadline(phase)

    paused = PauseAccounting.pause(phase, START + timedelta(days=2))
    resumed = PauseAccounting.resume(paused, START + timedelta(days=2, hours=5))

    assert resumed.total_paused_ms == 5 * 3600 * 1000
    assert PhaseClock.deadline(resumed) == deadline + timedelta(hours=5)
    assert PhaseClock.time_remaining(resumed, START + timedelta(days=2, hours=5)) == timedelta(days=5)

def test_repeated_pauses_accumulate():
    """Test that unpaused active time always adds up to the duration."""
    phase = active_phase()
    phase = PauseAccounting.pause(phase, START + timedelta(days=1))
    phase = PauseAccounting.resume(phase, START + timedelta(days=2))
    phase = PauseAccounting.pause(phase, START + timedelta(days=3))

    # 2 days active so far, 1 day paused and counting
    assert PhaseClock.time_remaining(phase, START + timedelta(days=10)) == timedelta(days=5)

    phase = PauseAccounting.resume(phase, START + timedelta(days=4))
    assert phase.total_paused_ms == 2 * 86400 * 1000
    assert PhaseClock.deadline(phase) == START + timedelta(days=9)

def test_pause_errors():
    """Test pause and resume preconditions."""
    phase = active_phase()
    paused = PauseAccounting.pause(phase, START)

    with pytest.raises(StateConflictError):
        PauseAccounting.pause(paused, START)
    with pytest.raises(StateConflictError):
        PauseAccounting.resume(phase, START)
    with pytest.raises(StateConflictError):
        PauseAccounting.pause(Phase(series_number=1, phase_number=2, duration_seconds=60), START)

def test_close_rolls_open_pause_into_total():
    """Test closing a paused phase on completion."""
    paused = PauseAccounting.pause(active_phase(), START)
    closed = PauseAccounting.close(paused, START + timedelta(minutes=30))
    assert not closed.is_paused
    assert closed.paused_at is None
    assert closed.total_paused_ms == 30 * 60 * 1000

    running = active_phase()
    assert PauseAccounting.close(running, START) == running

def test_clock_skew_never_shrinks_pause_total():
    """Test resuming at an instant before the pause."""
    paused = PauseAccounting.pause(active_phase(total_paused_ms=1000), START)
    resumed = PauseAccounting.resume(paused, START - timedelta(seconds=5))
    assert resumed.total_paused_ms == 1000
