"""
Pytest configuration and shared fixtures

Every test gets its own database file and a frozen clock, so audit
timestamps and replays are deterministic.
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import pytest

from authority_registry.authority.handlers import AuthorityCommandHandlers
from authority_registry.authority.projections import AuthorizationSet
from authority_registry.kernel.event_store import SQLiteEventStore
from authority_registry.kernel.ids import SequentialIdFactory
from authority_registry.kernel.policy import RegistryPolicy
from authority_registry.kernel.projection_store import SQLiteProjectionStore
from authority_registry.kernel.time import TestTimeProvider
from authority_registry.registry import AuthorityRegistry


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database path that's cleaned up after test"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "authority.db"


@pytest.fixture
def event_store(temp_db: Path) -> SQLiteEventStore:
    """Provide a fresh event store for each test"""
    return SQLiteEventStore(temp_db)


@pytest.fixture
def projection_store(temp_db: Path) -> SQLiteProjectionStore:
    """Provide a fresh projection store for each test"""
    return SQLiteProjectionStore(temp_db)


@pytest.fixture
def test_time() -> TestTimeProvider:
    """Controllable clock fixed at 2025-01-15 12:00:00 UTC"""
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy() -> RegistryPolicy:
    """Default registry policy"""
    return RegistryPolicy()


@pytest.fixture
def handlers(test_time: TestTimeProvider, policy: RegistryPolicy) -> AuthorityCommandHandlers:
    """Command handlers with deterministic ids"""
    return AuthorityCommandHandlers(test_time, policy, SequentialIdFactory("evt"))


@pytest.fixture
def authorization_set() -> AuthorizationSet:
    """Empty, uninitialized projection"""
    return AuthorizationSet()


@pytest.fixture
def registry(temp_db: Path, test_time: TestTimeProvider) -> AuthorityRegistry:
    """Uninitialized registry on a fresh database"""
    return AuthorityRegistry(temp_db, time_provider=test_time)


@pytest.fixture
def bootstrapped(registry: AuthorityRegistry) -> AuthorityRegistry:
    """Registry initialized by "creator" """
    registry.initialize("creator")
    return registry
