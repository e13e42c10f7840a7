"""
Persistent vector store kept in its own SQLite file.
Embeddings are stored as float32 blobs and scored with numpy on search.
"""

import json
from typing import List, Optional
import numpy as np

from ..core.db import Database, with_retry
from .index import IVectorStore, normalize, rank_by_distance
from .types import VectorRecord, QueryResult


class SqliteVectorStore(IVectorStore):
    """SQLite-backed implementation of IVectorStore (brute-force cosine)."""

    def __init__(self, path: str, dimension: int = 384):
        self.dimension = dimension
        self.database = Database(path)
        self._init_table()

    def _init_table(self):
        with self.database.connect() as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS memory_vectors (
                    memory_id TEXT PRIMARY KEY,
                    type TEXT,
                    title TEXT,
                    importance REAL,
                    tags TEXT NOT NULL DEFAULT '[]',
                    related_files TEXT NOT NULL DEFAULT '[]',
                    dimension INTEGER NOT NULL,
                    embedding BLOB NOT NULL
                )
            ''')
            conn.execute('CREATE INDEX IF NOT EXISTS idx_memory_vectors_type ON memory_vectors(type)')
            conn.commit()

    def _check_dimension(self, vector: np.ndarray):
        if vector.shape[0] != self.dimension:
            raise ValueError(f"Vector dimension {vector.shape[0]} does not match expected dimension {self.dimension}")

    def _row_params(self, record: VectorRecord, vector: np.ndarray) -> tuple:
        metadata = record.metadata or {}
        importance = metadata.get("importance")
        return (
            record.id,
            metadata.get("type"),
            metadata.get("title"),
            float(importance) if importance is not None else None,
            json.dumps(list(metadata.get("tags") or [])),
            json.dumps(list(metadata.get("related_files") or [])),
            self.dimension,
            vector.astype(np.float32).tobytes(),
        )

    def add(self, record: VectorRecord) -> None:
        """Add or replace a single vector record."""
        self.batch_add([record])

    def batch_add(self, records: List[VectorRecord]) -> None:
        """Add multiple vector records in one transaction."""
        params = []
        for record in records:
            vector = normalize(record.vector)
            if vector is None:
                continue
            self._check_dimension(vector)
            params.append(self._row_params(record, vector))

        if not params:
            return

        def operation():
            with self.database.connect() as conn:
                conn.executemany(
                    """
                    INSERT OR REPLACE INTO memory_vectors
                        (memory_id, type, title, importance, tags, related_files, dimension, embedding)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    params,
                )
                conn.commit()

        with_retry(operation)

    def search(self, query_vector, top_k: int = 5, type: Optional[str] = None, min_importance: Optional[float] = None) -> List[QueryResult]:
        """Search for similar vectors and return ranked results."""
        query = normalize(query_vector)
        if query is None:
            return []
        self._check_dimension(query)

        conditions = ["dimension = ?"]
        values = [self.dimension]
        if type is not None:
            conditions.append("type = ?")
            values.append(type)
        if min_importance is not None:
            conditions.append("importance >= ?")
            values.append(min_importance)

        def operation():
            with self.database.connect() as conn:
                return conn.execute(
                    f"""
                    SELECT memory_id, type, title, importance, tags, related_files, embedding
                    FROM memory_vectors
                    WHERE {' AND '.join(conditions)}
                    ORDER BY rowid
                    """,
                    values,
                ).fetchall()

        rows = with_retry(operation)
        if not rows:
            return []

        ids = [row["memory_id"] for row in rows]
        matrix = np.vstack([np.frombuffer(row["embedding"], dtype=np.float32) for row in rows])
        metadata = {
            row["memory_id"]: {
                "type": row["type"],
                "title": row["title"],
                "importance": row["importance"],
                "tags": json.loads(row["tags"] or "[]"),
                "related_files": json.loads(row["related_files"] or "[]"),
            }
            for row in rows
        }

        return [
            QueryResult(id=record_id, distance=distance, metadata=metadata[record_id])
            for record_id, distance in rank_by_distance(ids, matrix, query, top_k)
        ]

    def get_vector(self, record_id: str) -> Optional[np.ndarray]:
        def operation():
            with self.database.connect() as conn:
                return conn.execute(
                    "SELECT embedding FROM memory_vectors WHERE memory_id = ?", (record_id,)
                ).fetchone()

        row = with_retry(operation)
        if row is None:
            return None
        return np.frombuffer(row["embedding"], dtype=np.float32).copy()

    def delete(self, record_id: str) -> None:
        """Delete a vector record by ID."""
        def operation():
            with self.database.connect() as conn:
                conn.execute("DELETE FROM memory_vectors WHERE memory_id = ?", (record_id,))
                conn.commit()

        with_retry(operation)

    def clear(self) -> None:
        """Clear all records from the store."""
        def operation():
            with self.database.connect() as conn:
                conn.execute("DELETE FROM memory_vectors")
                conn.commit()

        with_retry(operation)

    def count(self) -> int:
        def operation():
            with self.database.connect() as conn:
                return conn.execute("SELECT COUNT(*) FROM memory_vectors").fetchone()[0]

        return int(with_retry(operation))
