"""Tests for the lifecycle stores and their failure paths."""

from contextlib import asynccontextmanager
from decimal import Decimal

import pytest
import pytest_asyncio
from asyncpg.exceptions import PostgresError, UniqueViolationError

from audit import AuditLog
from lifecycle import (
    LifecycleController,
    LifecycleState,
    InMemoryLifecycleStore,
    PostgresLifecycleStore,
    StateConflictError,
    PersistenceError
)

class FlakyStore(InMemoryLifecycleStore):
    """In-memory store whose pointer write can be made to fail."""

    def __init__(self):
        super().__init__()
        self.fail_pointer_writes = False

    @asynccontextmanager
    async def transaction(self):
        async with super().transaction() as tx:
            if self.fail_pointer_writes:
                async def save_pointer(pointer, expected_version):
                    raise PersistenceError("database connection lost")
                tx.save_pointer = save_pointer
            yield tx

class FakeTransaction:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        self.conn.events.append('begin')
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.conn.events.append('rollback' if exc_type else 'commit')
        return False

class FakeConnection:
    """Answers lifecycle reads from a state and fails writes on demand."""

    def __init__(self, state: LifecycleState, fail_on: str = None, error: Exception = None):
        self.state = state
        self.fail_on = fail_on
        self.error = error
        self.queries = []
        self.events = []

    def transaction(self, **kwargs):
        return FakeTransaction(self)

    async def fetch(self, query, *args):
        self.queries.append(query)
        if 'FROM series' in query:
            return [s.model_dump() for s in self.state.series]
        return [p.model_dump() for p in self.state.phases]

    async def fetchrow(self, query, *args):
        self.queries.append(query)
        if 'FROM lifecycle_pointer' in query:
            return self.state.pointer.model_dump()
        return self.state.settings.model_dump()

    async def execute(self, query, *args):
        self.queries.append(query)
        if self.fail_on and self.fail_on in query:
            raise self.error
        return 'UPDATE 1'

class FakePool:
    def __init__(self, conn):
        self.conn = conn

    @asynccontextmanager
    async def acquire(self):
        yield self.conn

@pytest.fixture
def flaky_store() -> FlakyStore:
    return FlakyStore()

@pytest_asyncio.fixture
async def flaky(flaky_store, audit_writer, clock, settings) -> LifecycleController:
    """Seeded controller on a store that can drop its pointer writes."""
    controller = LifecycleController(
        store=flaky_store,
        audit=AuditLog(writer=audit_writer),
        clock=clock,
        settings=settings
    )
    await controller.initialize()
    return controller

@pytest_asyncio.fixture
async def seeded_state(seeded) -> LifecycleState:
    return await seeded.store.snapshot()

def postgres_controller(conn, audit_writer, clock, settings) -> LifecycleController:
    return LifecycleController(
        store=PostgresLifecycleStore(pool=FakePool(conn)),
        audit=AuditLog(writer=audit_writer),
        clock=clock,
        settings=settings
    )

@pytest.mark.asyncio
async def test_failed_write_rolls_back_advance(flaky, flaky_store, audit_writer):
    """Test that a failure after the phase writes leaves the state untouched."""
    before = await flaky_store.snapshot()
    flaky_store.fail_pointer_writes = True

    with pytest.raises(PersistenceError):
        await flaky.advance()

    assert await flaky_store.snapshot() == before
    assert 'PHASE_ADVANCE' not in audit_writer.actions

@pytest.mark.asyncio
async def test_failed_write_rolls_back_sale(flaky, flaky_store):
    """Test that a failed sale does not count toward sell-through."""
    flaky_store.fail_pointer_writes = True
    with pytest.raises(PersistenceError):
        await flaky.record_sale(Decimal('10'), quantity=5)

    flaky_store.fail_pointer_writes = False
    status = await flaky.status()
    assert status.sell_through_rate == Decimal('0')
    assert status.series[0].sold_count == 0

@pytest.mark.asyncio
async def test_store_recovers_after_failed_write(flaky, flaky_store):
    """Test that the next transaction succeeds once the store is back."""
    flaky_store.fail_pointer_writes = True
    with pytest.raises(PersistenceError):
        await flaky.pause()

    flaky_store.fail_pointer_writes = False
    result = await flaky.pause()
    assert result.is_paused

@pytest.mark.asyncio
async def test_postgres_transaction_locks_pointer(seeded_state, audit_writer, clock, settings):
    """Test that writers read the pointer row with a row lock first."""
    conn = FakeConnection(seeded_state)
    controller = postgres_controller(conn, audit_writer, clock, settings)

    result = await controller.advance()

    assert result.phase_number == 2
    assert 'FOR UPDATE' in conn.queries[0]
    assert 'FROM lifecycle_pointer' in conn.queries[0]
    assert conn.events == ['begin', 'commit']

@pytest.mark.asyncio
async def test_postgres_snapshot_does_not_lock(seeded_state, audit_writer, clock, settings):
    """Test that status reads take no row locks."""
    conn = FakeConnection(seeded_state)
    controller = postgres_controller(conn, audit_writer, clock, settings)

    status = await controller.status()

    assert (status.current_series, status.current_phase) == (1, 1)
    assert not any('FOR UPDATE' in query for query in conn.queries)

@pytest.mark.asyncio
async def test_postgres_unique_violation_is_conflict(seeded_state, audit_writer, clock, settings):
    """Test that losing the single-active-phase index race reads as a conflict."""
    conn = FakeConnection(
        seeded_state,
        fail_on='INSERT INTO phases',
        error=UniqueViolationError('duplicate key value violates unique constraint "idx_phases_single_active"')
    )
    controller = postgres_controller(conn, audit_writer, clock, settings)

    with pytest.raises(StateConflictError):
        await controller.pause()
    assert conn.events == ['begin', 'rollback']
    assert 'PHASE_PAUSE' not in audit_writer.actions

@pytest.mark.asyncio
async def test_postgres_failure_is_persistence_error(seeded_state, audit_writer, clock, settings):
    """Test that other database errors roll back and surface as unavailable."""
    conn = FakeConnection(
        seeded_state,
        fail_on='UPDATE lifecycle_pointer',
        error=PostgresError('terminating connection due to administrator command')
    )
    controller = postgres_controller(conn, audit_writer, clock, settings)

    with pytest.raises(PersistenceError):
        await controller.advance()
    assert conn.events == ['begin', 'rollback']

@pytest.mark.asyncio
async def test_postgres_stale_pointer_update_conflicts(seeded_state, audit_writer, clock, settings):
    """Test that a pointer update matching no row is a conflict."""
    conn = FakeConnection(seeded_state)
    controller = postgres_controller(conn, audit_writer, clock, settings)

    async def execute(query, *args):
        conn.queries.append(query)
        return 'UPDATE 0' if 'UPDATE lifecycle_pointer' in query else 'UPDATE 1'
    conn.execute = execute

    with pytest.raises(StateConflictError):
        await controller.record_sale(Decimal('10'))
    assert conn.events == ['begin', 'rollback']
