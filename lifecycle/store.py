"""Persistence for lifecycle records.

A store hands out transactions. Each transaction reads the full lifecycle
state, stages writes, and commits them together. Every committed mutation
moves the pointer version forward; a transaction that started from an
older version is rejected with StateConflictError so overlapping writers
can never both apply.

Two stores are provided: PostgresLifecycleStore on the asyncpg pool and
InMemoryLifecycleStore for single-process use and tests.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from asyncpg.exceptions import (
    PostgresError, SerializationError, UniqueViolationError, InterfaceError
)

from database import get_pool
from .exceptions import StateConflictError, PersistenceError
from .models import (
    LifecycleState, LifecyclePointer, LifecycleSettings, Series, Phase
)

logger = logging.getLogger(__name__)

POINTER_ID = 'main'

class LifecycleTransaction(ABC):
    """Unit of work over the lifecycle records."""

    @abstractmethod
    async def load(self) -> LifecycleState:
        """Read the current state inside this transaction."""

    @abstractmethod
    async def save_series(self, series: Series) -> None:
        """Insert or update a series row."""

    @abstractmethod
    async def save_phase(self, phase: Phase) -> None:
        """Insert or update a phase row."""

    @abstractmethod
    async def save_settings(self, settings: LifecycleSettings) -> None:
        """Insert or update the settings row."""

    @abstractmethod
    async def save_pointer(self, pointer: LifecyclePointer, expected_version: int) -> None:
        """Write the pointer if its stored version is still ``expected_version``.

        Raises:
            StateConflictError: If another transaction moved the pointer first
        """

class LifecycleStore(ABC):
    """Source of lifecycle transactions and read snapshots."""

    @abstractmethod
    def transaction(self):
        """Async context manager yielding a LifecycleTransaction.

        Commits when the block exits normally, rolls back when it raises.
        """

    @abstractmethod
    async def snapshot(self) -> LifecycleState:
        """Consistent read-only copy of the current state."""

class _InMemoryTransaction(LifecycleTransaction):
    def __init__(self, state: LifecycleState):
        self.state = state
        self.base_version = state.pointer.version

    async def load(self) -> LifecycleState:
        return self.state.model_copy(deep=True)

    async def save_series(self, series: Series) -> None:
        self.state.series = [
            s for s in self.state.series if s.series_number != series.series_number
        ] + [series]
        self.state.series.sort(key=lambda s: s.series_number)

    async def save_phase(self, phase: Phase) -> None:
        self.state.phases = [p for p in self.state.phases if p.key != phase.key] + [phase]
        self.state.phases.sort(key=lambda p: p.key)

    async def save_settings(self, settings: LifecycleSettings) -> None:
        self.state.settings = settings

    async def save_pointer(self, pointer: LifecyclePointer, expected_version: int) -> None:
        if expected_version != self.base_version:
            raise StateConflictError(
                f"Lifecycle changed concurrently (expected version {expected_version}, "
                f"found {self.base_version})"
            )
        self.state.pointer = pointer

class InMemoryLifecycleStore(LifecycleStore):
    """Process-local store guarded by an asyncio lock."""

    def __init__(self, state: Optional[LifecycleState] = None) -> None:
        self._state = state or LifecycleState()
        self._lock = asyncio.Lock()

    async def snapshot(self) -> LifecycleState:
        return self._state.model_copy(deep=True)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[LifecycleTransaction]:
        tx = _InMemoryTransaction(self._state.model_copy(deep=True))
        # let overlapping transactions interleave
        await asyncio.sleep(0)
        yield tx
        async with self._lock:
            if self._state.pointer.version != tx.base_version:
                raise StateConflictError(
                    "Lifecycle changed concurrently, re-fetch status and retry"
                )
            self._state = tx.state

class _PostgresTransaction(LifecycleTransaction):
    def __init__(self, conn):
        self.conn = conn

    async def load(self) -> LifecycleState:
        return await _load_state(self.conn, for_update=True)

    async def save_series(self, series: Series) -> None:
        await self.conn.execute(
            '''
            INSERT INTO series (
                series_number, status, multiplier, start_date, end_date,
                total_nfts, sold_count, sell_through_rate, revenue, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, now())
            ON CONFLICT (series_number) DO UPDATE SET
                status = EXCLUDED.status,
                multiplier = EXCLUDED.multiplier,
                start_date = EXCLUDED.start_date,
                end_date = EXCLUDED.end_date,
                total_nfts = EXCLUDED.total_nfts,
                sold_count = EXCLUDED.sold_count,
                sell_through_rate = EXCLUDED.sell_through_rate,
                revenue = EXCLUDED.revenue,
                updated_at = now()
            ''',
            series.series_number,
            series.status.value,
            series.multiplier,
            series.start_date,
            series.end_date,
            series.total_nfts,
            series.sold_count,
            series.sell_through_rate,
            series.revenue
        )

    async def save_phase(self, phase: Phase) -> None:
        await self.conn.execute(
            '''
            INSERT INTO phases (
                series_number, phase_number, status, duration_seconds,
                start_date, end_date, is_paused, paused_at, total_paused_ms,
                total_nfts, sold_count, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, now())
            ON CONFLICT (series_number, phase_number) DO UPDATE SET
                status = EXCLUDED.status,
                duration_seconds = EXCLUDED.duration_seconds,
                start_date = EXCLUDED.start_date,
                end_date = EXCLUDED.end_date,
                is_paused = EXCLUDED.is_paused,
                paused_at = EXCLUDED.paused_at,
                total_paused_ms = EXCLUDED.total_paused_ms,
                total_nfts = EXCLUDED.total_nfts,
                sold_count = EXCLUDED.sold_count,
                updated_at = now()
            ''',
            phase.series_number,
            phase.phase_number,
            phase.status.value,
            phase.duration_seconds,
            phase.start_date,
            phase.end_date,
            phase.is_paused,
            phase.paused_at,
            phase.total_paused_ms,
            phase.total_nfts,
            phase.sold_count
        )

    async def save_settings(self, settings: LifecycleSettings) -> None:
        await self.conn.execute(
            '''
            INSERT INTO lifecycle_settings (id, series_growth_percent, updated_at)
            VALUES ($1, $2, now())
            ON CONFLICT (id) DO UPDATE SET
                series_growth_percent = EXCLUDED.series_growth_percent,
                updated_at = now()
            ''',
            POINTER_ID,
            settings.series_growth_percent
        )

    async def save_pointer(self, pointer: LifecyclePointer, expected_version: int) -> None:
        result = await self.conn.execute(
            '''
            UPDATE lifecycle_pointer
            SET series_number = $2,
                phase_number = $3,
                version = $4,
                updated_at = $5
            WHERE id = $1 AND version = $6
            ''',
            POINTER_ID,
            pointer.series_number,
            pointer.phase_number,
            pointer.version,
            pointer.updated_at,
            expected_version
        )
        if result != 'UPDATE 0':
            return

        if expected_version == 0:
            # First write: the pointer row does not exist yet
            result = await self.conn.execute(
                '''
                INSERT INTO lifecycle_pointer (
                    id, series_number, phase_number, version, updated_at
                ) VALUES ($1, $2, $3, $4, $5)
                ON CONFLICT (id) DO NOTHING
                ''',
                POINTER_ID,
                pointer.series_number,
                pointer.phase_number,
                pointer.version,
                pointer.updated_at
            )
            if result != 'INSERT 0 0':
                return

        raise StateConflictError(
            "Lifecycle changed concurrently, re-fetch status and retry"
        )

async def _load_state(conn, for_update: bool = False) -> LifecycleState:
    # Writers lock the pointer row before reading the rest
    pointer_row = await conn.fetchrow(
        '''
        SELECT series_number, phase_number, version, updated_at
        FROM lifecycle_pointer
        WHERE id = $1
        ''' + ('FOR UPDATE' if for_update else ''),
        POINTER_ID
    )
    series_rows = await conn.fetch(
        '''
        SELECT series_number, status, multiplier, start_date, end_date,
               total_nfts, sold_count, sell_through_rate, revenue
        FROM series
        ORDER BY series_number
        '''
    )
    phase_rows = await conn.fetch(
        '''
        SELECT series_number, phase_number, status, duration_seconds,
               start_date, end_date, is_paused, paused_at, total_paused_ms,
               total_nfts, sold_count
        FROM phases
        ORDER BY series_number, phase_number
        '''
    )
    settings_row = await conn.fetchrow(
        'SELECT series_growth_percent FROM lifecycle_settings WHERE id = $1',
        POINTER_ID
    )

    return LifecycleState(
        series=[Series(**dict(row)) for row in series_rows],
        phases=[Phase(**dict(row)) for row in phase_rows],
        pointer=LifecyclePointer(**dict(pointer_row)) if pointer_row else LifecyclePointer(),
        settings=LifecycleSettings(**dict(settings_row)) if settings_row else LifecycleSettings()
    )

class PostgresLifecycleStore(LifecycleStore):
    """Store backed by the asyncpg pool."""

    def __init__(self, pool=None) -> None:
        """Initialize the store.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
        """
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def snapshot(self) -> LifecycleState:
        await self.ensure_pool()
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction(isolation='repeatable_read', readonly=True):
                    return await _load_state(conn)
        except (PostgresError, InterfaceError, OSError) as e:
            logger.error(f"Failed to read lifecycle state: {e}")
            raise PersistenceError(f"Failed to read lifecycle state: {e}")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[LifecycleTransaction]:
        await self.ensure_pool()
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    yield _PostgresTransaction(conn)
        except (SerializationError, UniqueViolationError) as e:
            logger.warning(f"Lifecycle transaction lost a race with a concurrent writer: {e}")
            raise StateConflictError(
                "Lifecycle changed concurrently, re-fetch status and retry"
            )
        except (PostgresError, InterfaceError, OSError) as e:
            logger.error(f"Lifecycle transaction failed and was rolled back: {e}")
            raise PersistenceError(f"Lifecycle transaction failed: {e}")
