"""Pytest fixtures and factories.

Important: every model module must be imported before Base.metadata.create_all().
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure project root on sys.path so 'jobtracker' package resolves without installation
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from jobtracker.database import Base  # type: ignore
from jobtracker.models.db import Tracker  # noqa: F401
from jobtracker.jobs.cache import InMemoryTTLCache
from jobtracker.jobs.coordinator import Coordinator
from jobtracker.jobs.queue import PriorityDelayQueue
from jobtracker.jobs.scheduler import JobScheduler
from jobtracker.jobs.tracker_store import SqlTrackerStore
from jobtracker.jobs.worker import JobWorker, LAST_EXCEPTIONS

import sample_jobs


class FakeClock:
    """Injectable wall clock; call to read, ``advance`` to move forward."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta

    def monotonic(self) -> float:
        return self.current.timestamp()


@pytest.fixture()
def engine():
    # Single shared connection so every session sees the same in-memory DB
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def store(session_factory):
    return SqlTrackerStore(session_factory)


@pytest.fixture()
def clock():
    return FakeClock(datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc))


@pytest.fixture()
def cache(clock):
    return InMemoryTTLCache(clock=clock.monotonic)


@pytest.fixture()
def queue():
    q = PriorityDelayQueue()
    yield q
    q.purge()
    q.shutdown()


@pytest.fixture()
def coordinator(store, cache, clock, queue):
    return Coordinator(store, cache, clock=clock, tz="UTC", canceller=queue.cancel)


@pytest.fixture()
def scheduler(queue, coordinator):
    return JobScheduler(queue, coordinator)


@pytest.fixture()
def worker(queue, coordinator):
    return JobWorker(queue, coordinator, poll_timeout=0.1)


@pytest.fixture()
def submit_spy():
    """Submission closure recording each call and returning sequential provider ids."""
    spy = MagicMock()
    spy.side_effect = lambda invocation: f"provider-{spy.call_count}"
    return spy


@pytest.fixture(autouse=True)
def _isolate_test_state():
    """Reset module-level diagnostics shared across tests."""
    sample_jobs.PERFORMED.clear()
    LAST_EXCEPTIONS.clear()
    yield
    sample_jobs.PERFORMED.clear()
    LAST_EXCEPTIONS.clear()


@pytest.fixture()
def fake_redis():
    """MagicMock redis client implementing the SET NX/XX PX subset the cache uses."""
    client = MagicMock()
    data: dict[str, str] = {}
    client.store = data

    def mock_set(name, value, nx=False, xx=False, px=None, keepttl=False):
        if nx and name in data:
            return None
        if xx and name not in data:
            return None
        data[name] = value
        return True

    def mock_get(name):
        value = data.get(name)
        return value.encode("utf-8") if isinstance(value, str) else value

    def mock_delete(name):
        return 1 if data.pop(name, None) is not None else 0

    client.set.side_effect = mock_set
    client.get.side_effect = mock_get
    client.delete.side_effect = mock_delete
    client.ping.return_value = True
    return client
