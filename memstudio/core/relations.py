"""
Typed links between memories and the review queue of suggested links.
"""

import json
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

from .db import Database, with_retry
from .errors import NotFoundError, ValidationError
from .schema import RELATION_TYPES, LinkedRelation, MemoryRelation, RelationSuggestion
from ..util.logging import logger

RELATION_COLUMNS = "id, source_id, target_id, type, weight, metadata, created_at"

SUGGESTION_STATUSES = ("pending", "approved", "rejected")

# Weight given to a relation created by approving a suggestion
APPROVED_RELATION_WEIGHT = 0.8

SUGGESTION_LIST_LIMIT = 50


def _check_type(relation_type: str, field: str = "type"):
    if relation_type not in RELATION_TYPES:
        raise ValidationError(
            f"Relation type must be one of: {RELATION_TYPES}",
            details=[{"field": field, "message": "unknown relation type"}],
        )


def _check_unit_interval(value: float, field: str):
    if not 0 <= value <= 1:
        raise ValidationError(
            f"{field} must be between 0 and 1",
            details=[{"field": field, "message": "out of range"}],
        )


class MemoryRelationRepository:
    """Relations between memories plus the suggestion review queue."""

    def __init__(self, database: Database, clock=time.time):
        self.database = database
        self.clock = clock

    def _now(self) -> int:
        return int(self.clock())

    def _require_memories(self, conn, *memory_ids: str):
        for memory_id in memory_ids:
            if conn.execute("SELECT 1 FROM memories WHERE id = ?", (memory_id,)).fetchone() is None:
                raise NotFoundError(f"Memory with id '{memory_id}' not found")

    def get(self, relation_id: str) -> MemoryRelation:
        def operation():
            with self.database.connect() as conn:
                return conn.execute(
                    f"SELECT {RELATION_COLUMNS} FROM memory_relations WHERE id = ?", (relation_id,)
                ).fetchone()

        row = with_retry(operation)
        if row is None:
            raise NotFoundError(f"Relation with id '{relation_id}' not found")
        return MemoryRelation.from_row(row)

    def for_memory(self, memory_id: str) -> Tuple[List[LinkedRelation], List[LinkedRelation]]:
        """Outgoing and incoming relations of a memory, heaviest first."""
        def operation():
            with self.database.connect() as conn:
                self._require_memories(conn, memory_id)
                outgoing = conn.execute(
                    """
                    SELECT r.*, m.id AS other_id, m.title AS other_title, m.type AS other_type
                    FROM memory_relations r
                    JOIN memories m ON m.id = r.target_id
                    WHERE r.source_id = ?
                    ORDER BY r.weight DESC, r.created_at, r.id
                    """,
                    (memory_id,),
                ).fetchall()
                incoming = conn.execute(
                    """
                    SELECT r.*, m.id AS other_id, m.title AS other_title, m.type AS other_type
                    FROM memory_relations r
                    JOIN memories m ON m.id = r.source_id
                    WHERE r.target_id = ?
                    ORDER BY r.weight DESC, r.created_at, r.id
                    """,
                    (memory_id,),
                ).fetchall()
                return outgoing, incoming

        outgoing, incoming = with_retry(operation)
        return [self._linked(row) for row in outgoing], [self._linked(row) for row in incoming]

    @staticmethod
    def _linked(row) -> LinkedRelation:
        return LinkedRelation(
            relation=MemoryRelation.from_row(row),
            other_id=row["other_id"],
            other_title=row["other_title"],
            other_type=row["other_type"],
        )

    def create(
        self,
        source_id: str,
        target_id: str,
        type: str,
        weight: float = 1.0,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MemoryRelation:
        _check_type(type)
        _check_unit_interval(weight, "weight")
        relation_id = str(uuid.uuid4())
        now = self._now()

        def operation():
            with self.database.connect() as conn:
                self._require_memories(conn, source_id, target_id)
                conn.execute(
                    f"INSERT INTO memory_relations ({RELATION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        relation_id, source_id, target_id, type, float(weight),
                        json.dumps(metadata) if metadata is not None else None, now,
                    ),
                )
                conn.commit()

        with_retry(operation)
        logger.log_operation("relation.create", "success", {
            "relation_id": relation_id, "source_id": source_id, "target_id": target_id, "type": type,
        })
        return self.get(relation_id)

    def update(self, relation_id: str, changes: Dict[str, Any]) -> MemoryRelation:
        """Partial update of ``weight`` and/or ``metadata``."""
        existing = self.get(relation_id)

        assignments = []
        values: List[Any] = []
        if "weight" in changes:
            _check_unit_interval(changes["weight"], "weight")
            assignments.append("weight = ?")
            values.append(float(changes["weight"]))
        if "metadata" in changes:
            assignments.append("metadata = ?")
            values.append(json.dumps(changes["metadata"]) if changes["metadata"] is not None else None)

        if not assignments:
            return existing

        values.append(relation_id)

        def operation():
            with self.database.connect() as conn:
                conn.execute(f"UPDATE memory_relations SET {', '.join(assignments)} WHERE id = ?", values)
                conn.commit()

        with_retry(operation)
        logger.log_operation("relation.update", "success", {"relation_id": relation_id})
        return self.get(relation_id)

    def delete(self, relation_id: str) -> None:
        def operation():
            with self.database.connect() as conn:
                deleted = conn.execute("DELETE FROM memory_relations WHERE id = ?", (relation_id,)).rowcount
                conn.commit()
                return deleted

        if not with_retry(operation):
            raise NotFoundError(f"Relation with id '{relation_id}' not found")
        logger.log_operation("relation.delete", "success", {"relation_id": relation_id})

    def suggest(
        self,
        source_id: str,
        target_id: str,
        suggested_type: str,
        confidence: float,
        reason: Optional[str] = None,
        detection_method: Optional[str] = None,
    ) -> str:
        """Queue a detected relation for review. Returns the suggestion id."""
        _check_type(suggested_type, "suggested_type")
        _check_unit_interval(confidence, "confidence")
        suggestion_id = str(uuid.uuid4())
        now = self._now()

        def operation():
            with self.database.connect() as conn:
                self._require_memories(conn, source_id, target_id)
                conn.execute(
                    """
                    INSERT INTO relation_suggestions
                        (id, source_id, target_id, suggested_type, confidence, reason, detection_method, status, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, 'pending', ?)
                    """,
                    (suggestion_id, source_id, target_id, suggested_type, float(confidence), reason, detection_method, now),
                )
                conn.commit()

        with_retry(operation)
        logger.log_operation("relation.suggest", "success", {
            "suggestion_id": suggestion_id, "detection_method": detection_method,
        })
        return suggestion_id

    def suggestions(self, status: str = "pending", limit: int = SUGGESTION_LIST_LIMIT) -> List[RelationSuggestion]:
        """Suggestions with a given status, most confident first."""
        if status not in SUGGESTION_STATUSES:
            raise ValidationError(
                f"status must be one of: {list(SUGGESTION_STATUSES)}",
                details=[{"field": "status", "message": "unknown status"}],
            )

        def operation():
            with self.database.connect() as conn:
                return conn.execute(
                    """
                    SELECT s.*,
                           sm.title AS source_title, sm.type AS source_type,
                           tm.title AS target_title, tm.type AS target_type
                    FROM relation_suggestions s
                    JOIN memories sm ON sm.id = s.source_id
                    JOIN memories tm ON tm.id = s.target_id
                    WHERE s.status = ?
                    ORDER BY s.confidence DESC, s.created_at, s.id
                    LIMIT ?
                    """,
                    (status, limit),
                ).fetchall()

        return [RelationSuggestion.from_row(row) for row in with_retry(operation)]

    def _pending_suggestion(self, conn, suggestion_id: str):
        row = conn.execute(
            "SELECT source_id, target_id, suggested_type, status FROM relation_suggestions WHERE id = ?",
            (suggestion_id,),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Suggestion with id '{suggestion_id}' not found")
        if row["status"] != "pending":
            raise ValidationError(
                f"Suggestion '{suggestion_id}' was already {row['status']}",
                details=[{"field": "status", "message": row["status"]}],
            )
        return row

    def approve(self, suggestion_id: str) -> str:
        """Turn a pending suggestion into a relation. Returns the new relation id."""
        relation_id = str(uuid.uuid4())
        now = self._now()

        def operation():
            with self.database.connect() as conn:
                suggestion = self._pending_suggestion(conn, suggestion_id)
                conn.execute(
                    f"INSERT INTO memory_relations ({RELATION_COLUMNS}) VALUES (?, ?, ?, ?, ?, NULL, ?)",
                    (
                        relation_id, suggestion["source_id"], suggestion["target_id"],
                        suggestion["suggested_type"], APPROVED_RELATION_WEIGHT, now,
                    ),
                )
                conn.execute(
                    "UPDATE relation_suggestions SET status = 'approved', reviewed_at = ? WHERE id = ?",
                    (now, suggestion_id),
                )
                conn.commit()

        with_retry(operation)
        logger.log_operation("relation.approve", "success", {
            "suggestion_id": suggestion_id, "relation_id": relation_id,
        })
        return relation_id

    def reject(self, suggestion_id: str) -> None:
        now = self._now()

        def operation():
            with self.database.connect() as conn:
                self._pending_suggestion(conn, suggestion_id)
                conn.execute(
                    "UPDATE relation_suggestions SET status = 'rejected', reviewed_at = ? WHERE id = ?",
                    (now, suggestion_id),
                )
                conn.commit()

        with_retry(operation)
        logger.log_operation("relation.reject", "success", {"suggestion_id": suggestion_id})
