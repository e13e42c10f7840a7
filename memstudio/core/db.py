"""
SQLite record store: connection handling, schema and busy/locked retry.
"""

import sqlite3
import time
from contextlib import contextmanager
from typing import Callable, Generator, Optional, TypeVar

from . import config
from .errors import DatabaseError
from ..util.logging import logger

T = TypeVar("T")


class Database:
    """Handle on one SQLite file. Passed explicitly to repositories."""

    def __init__(self, path: Optional[str] = None, busy_timeout_ms: Optional[int] = None):
        self.path = path or config.get_db_path()
        self.busy_timeout_ms = busy_timeout_ms if busy_timeout_ms is not None else config.DB_BUSY_TIMEOUT_MS
        if self.path != ":memory:":
            config.ensure_data_directory(self.path)

    @contextmanager
    def connect(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a SQLite database connection."""
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        finally:
            conn.close()

    def init_db(self):
        """Initialize the database with required tables."""
        with self.connect() as conn:
            cursor = conn.cursor()

            # created_at/accessed_at are unix epoch seconds
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS memories (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    type TEXT NOT NULL,
                    content TEXT NOT NULL,
                    summary TEXT,
                    importance REAL NOT NULL DEFAULT 0.5
                        CHECK (importance >= 0 AND importance <= 1),
                    tags TEXT NOT NULL DEFAULT '[]',
                    related_files TEXT NOT NULL DEFAULT '[]',
                    created_at INTEGER NOT NULL DEFAULT (CAST(strftime('%s', 'now') AS INTEGER)),
                    accessed_at INTEGER NOT NULL DEFAULT (CAST(strftime('%s', 'now') AS INTEGER)),
                    access_count INTEGER NOT NULL DEFAULT 0 CHECK (access_count >= 0),
                    needs_review INTEGER NOT NULL DEFAULT 0
                )
            ''')

            cursor.execute('CREATE INDEX IF NOT EXISTS idx_memories_type ON memories(type)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_memories_created ON memories(created_at, id)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_memories_accessed ON memories(accessed_at, id)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_memories_importance ON memories(importance, id)')

            # Typed, weighted links between memories
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS memory_relations (
                    id TEXT PRIMARY KEY,
                    source_id TEXT NOT NULL REFERENCES memories(id) ON DELETE CASCADE,
                    target_id TEXT NOT NULL REFERENCES memories(id) ON DELETE CASCADE,
                    type TEXT NOT NULL,
                    weight REAL NOT NULL DEFAULT 1.0 CHECK (weight >= 0 AND weight <= 1),
                    metadata TEXT,
                    created_at INTEGER NOT NULL DEFAULT (CAST(strftime('%s', 'now') AS INTEGER))
                )
            ''')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_relations_source ON memory_relations(source_id)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_relations_target ON memory_relations(target_id)')

            # Detected relations waiting for review
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS relation_suggestions (
                    id TEXT PRIMARY KEY,
                    source_id TEXT NOT NULL REFERENCES memories(id) ON DELETE CASCADE,
                    target_id TEXT NOT NULL REFERENCES memories(id) ON DELETE CASCADE,
                    suggested_type TEXT NOT NULL,
                    confidence REAL NOT NULL DEFAULT 0.5,
                    reason TEXT,
                    detection_method TEXT,
                    status TEXT NOT NULL DEFAULT 'pending'
                        CHECK (status IN ('pending', 'approved', 'rejected')),
                    created_at INTEGER NOT NULL DEFAULT (CAST(strftime('%s', 'now') AS INTEGER)),
                    reviewed_at INTEGER
                )
            ''')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_suggestions_status ON relation_suggestions(status, confidence)')

            # Code graph written by the code indexer
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS code_nodes (
                    id TEXT PRIMARY KEY,
                    type TEXT NOT NULL,
                    name TEXT NOT NULL,
                    file_path TEXT NOT NULL,
                    start_line INTEGER,
                    end_line INTEGER,
                    signature TEXT,
                    summary TEXT,
                    metadata TEXT,
                    created_at INTEGER NOT NULL DEFAULT (CAST(strftime('%s', 'now') AS INTEGER)),
                    updated_at INTEGER NOT NULL DEFAULT (CAST(strftime('%s', 'now') AS INTEGER))
                )
            ''')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_code_nodes_type ON code_nodes(type)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_code_nodes_name ON code_nodes(name, id)')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS code_edges (
                    id TEXT PRIMARY KEY,
                    from_node TEXT NOT NULL REFERENCES code_nodes(id) ON DELETE CASCADE,
                    to_node TEXT NOT NULL REFERENCES code_nodes(id) ON DELETE CASCADE,
                    edge_type TEXT NOT NULL,
                    metadata TEXT,
                    created_at INTEGER NOT NULL DEFAULT (CAST(strftime('%s', 'now') AS INTEGER))
                )
            ''')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_code_edges_from ON code_edges(from_node)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_code_edges_to ON code_edges(to_node)')

            # Links between memories and code nodes
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS cross_layer_relations (
                    id TEXT PRIMARY KEY,
                    memory_id TEXT NOT NULL REFERENCES memories(id) ON DELETE CASCADE,
                    code_node_id TEXT NOT NULL REFERENCES code_nodes(id) ON DELETE CASCADE,
                    relation_type TEXT NOT NULL,
                    direction TEXT NOT NULL DEFAULT 'memory_to_code',
                    confidence REAL NOT NULL DEFAULT 1.0,
                    metadata TEXT,
                    created_at INTEGER NOT NULL DEFAULT (CAST(strftime('%s', 'now') AS INTEGER))
                )
            ''')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_cross_layer_memory ON cross_layer_relations(memory_id)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_cross_layer_code ON cross_layer_relations(code_node_id)')

            conn.commit()

    def health_check(self) -> bool:
        """Check database health."""
        try:
            with self.connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
                table_names = [row[0] for row in cursor.fetchall()]
                return "memories" in table_names
        except sqlite3.Error as e:
            logger.error(f"Database health check failed: {e}")
            return False


def is_busy_error(error: Exception) -> bool:
    """True for the transient contention errors SQLite reports as OperationalError."""
    if not isinstance(error, sqlite3.OperationalError):
        return False
    message = str(error).lower()
    return "locked" in message or "busy" in message


def with_retry(
    operation: Callable[[], T],
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run a store operation, retrying busy/locked errors with exponential backoff.

    Delays are ``base_delay * 2 ** attempt``. Once attempts are exhausted, or on
    any other sqlite error, a ``DatabaseError`` is raised with the driver
    message kept in ``details`` for logging only.
    """
    max_retries = max(1, max_retries if max_retries is not None else config.DB_MAX_RETRIES)
    base_delay = base_delay if base_delay is not None else config.DB_RETRY_BASE_DELAY

    for attempt in range(max_retries):
        try:
            return operation()
        except sqlite3.Error as e:
            if is_busy_error(e) and attempt < max_retries - 1:
                delay = base_delay * (2 ** attempt)
                logger.log_db_retry(attempt + 1, max_retries, delay, str(e))
                sleep(delay)
                continue
            logger.error(f"Database operation failed after {attempt + 1} attempt(s): {e}")
            raise DatabaseError(details=str(e)) from e
