"""
Record store access for memories.
All SQL against the ``memories`` table lives here; callers only see typed records.
"""

import json
import time
from typing import Any, Dict, List, Optional

from .db import Database, with_retry
from .errors import NotFoundError, ValidationError
from .pagination import build_page, decode_cursor, order_by_clause, seek_clause
from .schema import KeywordCandidate, MemoryRecord, MemoryStats, Page
from ..util.logging import logger

MEMORY_COLUMNS = """
    id, title, type, content, summary, importance,
    tags, related_files, created_at, accessed_at,
    access_count, needs_review
"""

UPDATABLE_FIELDS = ("title", "type", "content", "summary", "importance", "tags", "related_files", "needs_review")

TITLE_WEIGHT = 2
CONTENT_WEIGHT = 1
SUMMARY_WEIGHT = 1

RECENT_WINDOW_SECONDS = 7 * 24 * 3600
STALE_WINDOW_SECONDS = 30 * 24 * 3600


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so the query is matched as a literal substring."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class MemoryRepository:
    """CRUD, listing and text matching over the memories table."""

    def __init__(self, database: Database, clock=time.time):
        self.database = database
        self.clock = clock

    def _now(self) -> int:
        return int(self.clock())

    def _fetch_one(self, memory_id: str) -> Optional[MemoryRecord]:
        def operation():
            with self.database.connect() as conn:
                return conn.execute(
                    f"SELECT {MEMORY_COLUMNS} FROM memories WHERE id = ?", (memory_id,)
                ).fetchone()

        row = with_retry(operation)
        return MemoryRecord.from_row(row) if row else None

    def peek(self, memory_id: str) -> Optional[MemoryRecord]:
        """Read a memory without counting it as an access."""
        return self._fetch_one(memory_id)

    def exists(self, memory_id: str) -> bool:
        return self._fetch_one(memory_id) is not None

    def get_by_id(self, memory_id: str) -> MemoryRecord:
        """Read a memory, bumping ``accessed_at`` and ``access_count`` once."""
        if not self.exists(memory_id):
            raise NotFoundError(f"Memory with id '{memory_id}' not found")

        now = self._now()

        def touch():
            with self.database.connect() as conn:
                # MAX keeps accessed_at monotonic if the clock goes backwards
                conn.execute(
                    """
                    UPDATE memories
                    SET accessed_at = MAX(accessed_at, ?), access_count = access_count + 1
                    WHERE id = ?
                    """,
                    (now, memory_id),
                )
                conn.commit()
                return conn.execute(
                    f"SELECT {MEMORY_COLUMNS} FROM memories WHERE id = ?", (memory_id,)
                ).fetchone()

        row = with_retry(touch)
        if row is None:
            # Deleted between the existence check and the update
            raise NotFoundError(f"Memory with id '{memory_id}' not found")
        return MemoryRecord.from_row(row)

    def create(
        self,
        id: str,
        title: str,
        type: str,
        content: str,
        summary: Optional[str] = None,
        importance: float = 0.5,
        tags: Optional[List[str]] = None,
        related_files: Optional[List[str]] = None,
    ) -> MemoryRecord:
        """Insert a memory with a caller supplied id."""
        if self.exists(id):
            raise ValidationError(
                f"Memory with id '{id}' already exists",
                details=[{"field": "id", "message": "already exists"}],
            )

        now = self._now()

        def operation():
            with self.database.connect() as conn:
                conn.execute(
                    f"""
                    INSERT INTO memories ({MEMORY_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, 0)
                    """,
                    (
                        id, title, type, content, summary, float(importance),
                        json.dumps(tags or []), json.dumps(related_files or []),
                        now, now,
                    ),
                )
                conn.commit()

        with_retry(operation)
        logger.log_memory_operation("create", id, details={"type": type})
        return self.peek(id)

    def update(self, memory_id: str, changes: Dict[str, Any]) -> MemoryRecord:
        """Apply a partial update. Unknown keys are ignored; no changes returns the record as is."""
        existing = self.peek(memory_id)
        if existing is None:
            raise NotFoundError(f"Memory with id '{memory_id}' not found")

        assignments = []
        values: List[Any] = []
        for name in UPDATABLE_FIELDS:
            if name not in changes:
                continue
            value = changes[name]
            if name in ("tags", "related_files"):
                value = json.dumps(list(value or []))
            elif name == "needs_review":
                value = 1 if value else 0
            assignments.append(f"{name} = ?")
            values.append(value)

        if not assignments:
            return existing

        values.append(memory_id)

        def operation():
            with self.database.connect() as conn:
                conn.execute(f"UPDATE memories SET {', '.join(assignments)} WHERE id = ?", values)
                conn.commit()

        with_retry(operation)
        logger.log_memory_operation("update", memory_id, details={"fields": [a.split(" ")[0] for a in assignments]})
        return self.peek(memory_id)

    def delete(self, memory_id: str) -> None:
        """Hard delete. The memory's vector is the caller's to remove."""
        if not self.exists(memory_id):
            raise NotFoundError(f"Memory with id '{memory_id}' not found")

        def operation():
            with self.database.connect() as conn:
                conn.execute("DELETE FROM memories WHERE id = ?", (memory_id,))
                conn.commit()

        with_retry(operation)
        logger.log_memory_operation("delete", memory_id)

    def list(
        self,
        type: Optional[str] = None,
        tags: Optional[List[str]] = None,
        sort: str = "created",
        order: str = "desc",
        cursor: Optional[str] = None,
        limit: int = 50,
    ) -> Page[MemoryRecord]:
        """One page of memories in ``(sort column, id)`` order."""
        conditions = []
        values: List[Any] = []

        if type:
            conditions.append("type = ?")
            values.append(type)

        if tags:
            # Any-of match against the JSON encoded array
            tag_conditions = []
            for tag in tags:
                tag_conditions.append("EXISTS (SELECT 1 FROM json_each(memories.tags) WHERE json_each.value = ?)")
                values.append(tag)
            conditions.append(f"({' OR '.join(tag_conditions)})")

        decoded = decode_cursor(cursor)
        if cursor and decoded is None:
            logger.debug(f"Ignoring malformed cursor: {cursor[:40]}")
        if decoded is not None:
            clause, params = seek_clause(sort, order, decoded)
            conditions.append(clause)
            values.extend(params)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        query = f"""
            SELECT {MEMORY_COLUMNS}
            FROM memories
            {where_clause}
            {order_by_clause(sort, order)}
            LIMIT ?
        """
        values.append(limit + 1)

        def operation():
            with self.database.connect() as conn:
                return conn.execute(query, values).fetchall()

        rows = with_retry(operation)
        return build_page([MemoryRecord.from_row(row) for row in rows], limit, sort)

    def query_by_text(
        self,
        text: str,
        type: Optional[str] = None,
        min_importance: Optional[float] = None,
        limit: int = 40,
    ) -> List[KeywordCandidate]:
        """Memories whose title, content or summary contain ``text`` (case-insensitive).

        ``match_score`` is 2 for a title hit plus 1 each for content and summary.
        """
        pattern = f"%{escape_like(text)}%"
        conditions = [
            "(title LIKE ? ESCAPE '\\' OR content LIKE ? ESCAPE '\\' OR summary LIKE ? ESCAPE '\\')"
        ]
        values: List[Any] = [pattern, pattern, pattern, pattern, pattern, pattern]

        if type:
            conditions.append("type = ?")
            values.append(type)
        if min_importance is not None:
            conditions.append("importance >= ?")
            values.append(min_importance)
        values.append(limit)

        query = f"""
            SELECT
                id, title, type, tags, related_files, importance,
                (
                    CASE WHEN title LIKE ? ESCAPE '\\' THEN {TITLE_WEIGHT} ELSE 0 END +
                    CASE WHEN content LIKE ? ESCAPE '\\' THEN {CONTENT_WEIGHT} ELSE 0 END +
                    CASE WHEN COALESCE(summary, '') LIKE ? ESCAPE '\\' THEN {SUMMARY_WEIGHT} ELSE 0 END
                ) AS match_score
            FROM memories
            WHERE {' AND '.join(conditions)}
            ORDER BY match_score DESC, rowid ASC
            LIMIT ?
        """

        def operation():
            with self.database.connect() as conn:
                return conn.execute(query, values).fetchall()

        rows = with_retry(operation)
        return [KeywordCandidate.from_row(row) for row in rows]

    def all_records(self) -> List[MemoryRecord]:
        def operation():
            with self.database.connect() as conn:
                return conn.execute(f"SELECT {MEMORY_COLUMNS} FROM memories ORDER BY created_at, id").fetchall()

        return [MemoryRecord.from_row(row) for row in with_retry(operation)]

    def count(self) -> int:
        def operation():
            with self.database.connect() as conn:
                return conn.execute("SELECT COUNT(*) FROM memories").fetchone()[0]

        return int(with_retry(operation))

    def stats(self) -> MemoryStats:
        """Dashboard statistics over the whole store."""
        now = self._now()

        def operation():
            with self.database.connect() as conn:
                total = conn.execute("SELECT COUNT(*) FROM memories").fetchone()[0]
                type_rows = conn.execute(
                    "SELECT type, COUNT(*) AS count FROM memories GROUP BY type"
                ).fetchall()
                recent = conn.execute(
                    "SELECT COUNT(*) FROM memories WHERE created_at >= ?", (now - RECENT_WINDOW_SECONDS,)
                ).fetchone()[0]
                stale = conn.execute(
                    "SELECT COUNT(*) FROM memories WHERE accessed_at < ?", (now - STALE_WINDOW_SECONDS,)
                ).fetchone()[0]
                avg_importance = conn.execute("SELECT AVG(importance) FROM memories").fetchone()[0]
                tag_rows = conn.execute(
                    """
                    SELECT json_each.value AS tag, COUNT(*) AS count
                    FROM memories, json_each(memories.tags)
                    GROUP BY json_each.value
                    ORDER BY count DESC, tag ASC
                    LIMIT 10
                    """
                ).fetchall()
                return total, type_rows, recent, stale, avg_importance, tag_rows

        total, type_rows, recent, stale, avg_importance, tag_rows = with_retry(operation)
        return MemoryStats(
            total=int(total),
            by_type={row["type"]: int(row["count"]) for row in type_rows},
            recent_count=int(recent),
            stale_count=int(stale),
            avg_importance=float(avg_importance) if avg_importance is not None else 0.0,
            top_tags=[{"tag": row["tag"], "count": int(row["count"])} for row in tag_rows],
        )

    def recent(self, limit: int = 10) -> List[MemoryRecord]:
        def operation():
            with self.database.connect() as conn:
                return conn.execute(
                    f"SELECT {MEMORY_COLUMNS} FROM memories ORDER BY created_at DESC, id DESC LIMIT ?",
                    (limit,),
                ).fetchall()

        return [MemoryRecord.from_row(row) for row in with_retry(operation)]
