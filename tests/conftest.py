import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from hanja_search.app.data.database import SQLiteHanjaRepository
from hanja_search.app.services.cache import InMemoryCacheStore
from hanja_search.core import DEFAULT_CONFLICTS, ConflictRegistry, InMemoryConflictStore


class ManualClock:
    """Clock stub advanced explicitly by tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def demo_repository(tmp_path):
    """SQLite repository seeded with the demo dictionary."""

    repository = SQLiteHanjaRepository(str(tmp_path / "hanja.db"), pool_size=2, pool_timeout=1.0)
    repository.ensure_database()
    yield repository
    repository.close()


@pytest.fixture
def conflict_store():
    return InMemoryConflictStore(DEFAULT_CONFLICTS)


@pytest.fixture
def registry(conflict_store):
    return ConflictRegistry(conflict_store)


@pytest.fixture
def manual_clock():
    return ManualClock()


@pytest.fixture
def memory_store(manual_clock):
    return InMemoryCacheStore(max_entries=256, clock=manual_clock)
