"""Worker that advances the lifecycle when a phase deadline passes."""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from lifecycle import (
    LifecycleController, AdvanceResult, PhaseClock, StateConflictError,
    LifecycleExhaustedError, PersistenceError
)

# Configure logging
logger = logging.getLogger(__name__)

async def advance_if_expired(controller: LifecycleController,
                             now: Optional[datetime] = None) -> Optional[AdvanceResult]:
    """Advance once if the active phase has run out of time.

    Paused phases never expire. The advance is conditioned on the version
    the state was read at, so an admin advancing in between wins and this
    call becomes a no-op.

    Returns:
        The advance result, or None when nothing was due

    Raises:
        LifecycleExhaustedError: When the final phase completed
    """
    now = now or controller.clock()
    state = await controller.store.snapshot()
    phase = state.active_phase()
    if phase is None:
        return None
    if phase.is_paused:
        logger.debug("Phase timer is paused, skipping advancement")
        return None
    if not PhaseClock.is_expired(phase, now):
        logger.debug(
            f"Series {phase.series_number} phase {phase.phase_number} has "
            f"{PhaseClock.time_remaining(phase, now)} remaining"
        )
        return None

    logger.info(f"Series {phase.series_number} phase {phase.phase_number} expired, advancing")
    try:
        return await controller.advance(expected_version=state.pointer.version)
    except LifecycleExhaustedError:
        raise
    except StateConflictError as e:
        logger.info(f"Advance skipped, lifecycle changed concurrently: {e.message}")
        return None

async def run_worker(controller: Optional[LifecycleController] = None,
                     interval: Optional[int] = None,
                     stop_event: Optional[asyncio.Event] = None) -> None:
    """Main worker loop. Returns when the lifecycle is exhausted or stop_event is set."""
    controller = controller or LifecycleController()
    interval = interval or controller.settings.scheduler_interval
    stop_event = stop_event or asyncio.Event()

    logger.info(f"Phase scheduler starting up, checking every {interval}s")
    while not stop_event.is_set():
        try:
            await advance_if_expired(controller)
        except LifecycleExhaustedError:
            logger.info("Lifecycle exhausted, phase scheduler stopping")
            return
        except PersistenceError as e:
            logger.error(f"Phase scheduler could not reach the store: {e.message}")

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass

    logger.info("Phase scheduler stopped")

if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        pass
