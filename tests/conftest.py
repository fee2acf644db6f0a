"""Pytest configuration and fixtures."""

import os
import tempfile
from collections.abc import Generator

import pytest

from geogate.config import QuotaPolicy
from geogate.db.manager import DatabaseManager
from geogate.quota import AdmissionEngine, CredentialStore

T0 = 1_700_000_000_000
WINDOW_MS = 12 * 60 * 60 * 1000


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def temp_db_path() -> Generator[str, None, None]:
    """Create a temporary database file."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    yield db_path
    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(db_path + suffix)
        except OSError:
            pass


@pytest.fixture
def db_manager(temp_db_path: str) -> Generator[DatabaseManager, None, None]:
    """Create a DatabaseManager with a temporary database."""
    manager = DatabaseManager(database_url=f"sqlite:///{temp_db_path}")
    manager.init_db()
    yield manager
    manager.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def policy() -> QuotaPolicy:
    return QuotaPolicy(window_ms=WINDOW_MS, default_limit=2)


@pytest.fixture
def store(db_manager: DatabaseManager, policy: QuotaPolicy, clock: FakeClock) -> CredentialStore:
    return CredentialStore(db_manager, policy, clock=clock)


@pytest.fixture
def engine(store: CredentialStore, policy: QuotaPolicy, clock: FakeClock) -> AdmissionEngine:
    return AdmissionEngine(store, policy, clock=clock)
