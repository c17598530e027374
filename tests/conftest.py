"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from leave_app.actions.memory_adapter import InMemoryActionAdapter
from leave_app.config.defaults import get_default_config
from leave_app.models.period import NewPeriod
from leave_app.persistence.period_store import PeriodStore
from leave_app.scheduler.sweep import LifecycleSweeper, default_sweep_specs


T0 = datetime(2025, 6, 18, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed reference instant for sweeps."""
    return T0


@pytest.fixture
def store(tmp_path) -> PeriodStore:
    """Period store on a temporary SQLite file."""
    return PeriodStore(tmp_path / "test_periods.db")


@pytest.fixture
def adapter() -> InMemoryActionAdapter:
    """In-memory directory with three guild members."""
    return InMemoryActionAdapter(members=["A", "B", "C"])


@pytest.fixture
def config():
    return get_default_config()


@pytest.fixture
def specs(config):
    return default_sweep_specs(config.messages)


@pytest.fixture
def sweeper(store, adapter, config) -> LifecycleSweeper:
    return LifecycleSweeper(store, adapter, time_params=config.time, batch_size=100)


@pytest.fixture
def period_factory():
    """Build a NewPeriod relative to T0; defaults to one that is already due to start."""
    def make(account_id: str = "A", start_offset: timedelta = timedelta(minutes=-1),
             end_offset: timedelta = timedelta(hours=1), reason: str = "Family vacation",
             base: datetime = T0) -> NewPeriod:
        return NewPeriod(
            account_id=account_id,
            reason=reason,
            start_time=base + start_offset,
            end_time=base + end_offset,
        )
    return make
