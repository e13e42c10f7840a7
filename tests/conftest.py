"""
Shared fixtures: every test gets its own SQLite files under tmp_path.
"""

import pytest

from memstudio.core.code_graph import CodeGraphRepository
from memstudio.core.dao import MemoryRepository
from memstudio.core.db import Database
from memstudio.core.relations import MemoryRelationRepository


class FakeClock:
    """Settable clock so timestamps (and duplicate sort keys) are deterministic."""

    def __init__(self, now: float = 1_700_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def database(tmp_path):
    db = Database(str(tmp_path / "local.db"))
    db.init_db()
    return db


@pytest.fixture
def repository(database, clock):
    return MemoryRepository(database, clock=clock)


@pytest.fixture
def make_memory(repository):
    """Create a memory with sensible defaults; keyword overrides win."""
    def _make(memory_id: str, **overrides):
        fields = {
            "title": f"Memory {memory_id}",
            "type": "note",
            "content": f"Content of {memory_id}",
            "summary": None,
            "importance": 0.5,
            "tags": [],
            "related_files": [],
        }
        fields.update(overrides)
        return repository.create(id=memory_id, **fields)

    return _make


@pytest.fixture
def relations(database, clock):
    return MemoryRelationRepository(database, clock=clock)


@pytest.fixture
def code_graph(database, clock):
    return CodeGraphRepository(database, clock=clock)
