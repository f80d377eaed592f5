"""Shared fixtures for the lifecycle tests."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import pytest
import pytest_asyncio

from audit import AuditLog
from config import PricingSettings, DEFAULTS
from lifecycle import LifecycleController, InMemoryLifecycleStore

START = datetime(2025, 1, 1, tzinfo=timezone.utc)

class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def tick(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

class RecordingWriter:
    """Audit writer that keeps entries in memory."""

    def __init__(self, fail: bool = False):
        self.entries: List[Dict[str, Any]] = []
        self.fail = fail

    async def __call__(self, entry: Dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("audit store unavailable")
        self.entries.append(entry)

    @property
    def actions(self) -> List[str]:
        return [entry['action'] for entry in self.entries]

@pytest.fixture
def settings() -> PricingSettings:
    """Default settings with 100 items per series."""
    return PricingSettings(**{
        **DEFAULTS,
        'series_total_nfts': 100,
        'admin_token_secret': 'test-secret'
    })

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()

@pytest.fixture
def audit_writer() -> RecordingWriter:
    return RecordingWriter()

@pytest.fixture
def failing_writer() -> RecordingWriter:
    return RecordingWriter(fail=True)

@pytest.fixture
def store() -> InMemoryLifecycleStore:
    return InMemoryLifecycleStore()

@pytest.fixture
def controller(store, audit_writer, clock, settings) -> LifecycleController:
    """Controller on an empty in-memory store."""
    return LifecycleController(
        store=store,
        audit=AuditLog(writer=audit_writer),
        clock=clock,
        settings=settings
    )

@pytest_asyncio.fixture
async def seeded(controller) -> LifecycleController:
    """Controller with series 1 phase 1 active."""
    await controller.initialize()
    return controller
