"""
Similarity provider interface and the in-memory cosine implementation.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import numpy as np

from .types import VectorRecord, QueryResult


def normalize(vector) -> Optional[np.ndarray]:
    """Unit-normalize a vector; ``None`` for empty or zero vectors."""
    if vector is None:
        return None
    array = np.asarray(vector, dtype=np.float32).reshape(-1)
    if array.size == 0:
        return None
    norm = np.linalg.norm(array)
    if norm == 0:
        return None
    return array / norm


def matches_filters(metadata: Dict[str, object], type: Optional[str] = None, min_importance: Optional[float] = None) -> bool:
    if type is not None and metadata.get("type") != type:
        return False
    if min_importance is not None:
        importance = metadata.get("importance")
        if importance is None or float(importance) < min_importance:
            return False
    return True


def rank_by_distance(ids: List[str], matrix: np.ndarray, query: np.ndarray, top_k: int) -> List[tuple]:
    """Cosine distances of unit rows in ``matrix`` to unit ``query``, nearest first.

    Ties keep the order of ``ids``.
    """
    if not ids or top_k <= 0:
        return []
    similarities = matrix @ query
    distances = np.clip(1.0 - similarities, 0.0, 2.0)
    order = np.argsort(distances, kind="stable")[:top_k]
    return [(ids[i], float(distances[i])) for i in order]


class IVectorStore(ABC):
    """Abstract interface for vector storage operations."""

    @abstractmethod
    def add(self, record: VectorRecord) -> None:
        """Add or replace a single vector record."""
        pass

    @abstractmethod
    def batch_add(self, records: List[VectorRecord]) -> None:
        """Add multiple vector records to the store."""
        pass

    @abstractmethod
    def search(
        self,
        query_vector: np.ndarray,
        top_k: int = 5,
        type: Optional[str] = None,
        min_importance: Optional[float] = None,
    ) -> List[QueryResult]:
        """Nearest records by cosine distance, ascending. Filters apply before the top-k cut."""
        pass

    @abstractmethod
    def get_vector(self, record_id: str) -> Optional[np.ndarray]:
        """Stored (normalized) vector for a record, or None."""
        pass

    @abstractmethod
    def delete(self, record_id: str) -> None:
        """Delete a vector record by ID. Unknown IDs are ignored."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all records from the store."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Number of stored vectors."""
        pass


class SimpleInMemoryVectorStore(IVectorStore):
    """Simple in-memory implementation of IVectorStore using cosine similarity."""

    def __init__(self):
        self._metadata = {}  # record_id -> metadata
        self._index = {}     # record_id -> normalized_vector

    def add(self, record: VectorRecord) -> None:
        """Add or replace a single vector record."""
        normalized = normalize(record.vector)
        if normalized is None:
            return
        self._index[record.id] = normalized
        self._metadata[record.id] = dict(record.metadata or {})

    def batch_add(self, records: List[VectorRecord]) -> None:
        """Add multiple vector records to the store."""
        for record in records:
            self.add(record)

    def search(self, query_vector, top_k: int = 5, type: Optional[str] = None, min_importance: Optional[float] = None) -> List[QueryResult]:
        """Search for similar vectors and return ranked results."""
        query = normalize(query_vector)
        if query is None or not self._index:
            return []

        ids = [
            record_id for record_id in self._index
            if matches_filters(self._metadata[record_id], type, min_importance)
        ]
        if not ids:
            return []

        matrix = np.vstack([self._index[record_id] for record_id in ids])
        if matrix.shape[1] != query.shape[0]:
            raise ValueError(f"Query dimension {query.shape[0]} does not match stored dimension {matrix.shape[1]}")

        return [
            QueryResult(id=record_id, distance=distance, metadata=self._metadata[record_id])
            for record_id, distance in rank_by_distance(ids, matrix, query, top_k)
        ]

    def get_vector(self, record_id: str) -> Optional[np.ndarray]:
        return self._index.get(record_id)

    def delete(self, record_id: str) -> None:
        """Delete a vector record by ID."""
        self._index.pop(record_id, None)
        self._metadata.pop(record_id, None)

    def clear(self) -> None:
        """Clear all records from the store."""
        self._index.clear()
        self._metadata.clear()

    def count(self) -> int:
        return len(self._index)
