"""
FAISS-backed similarity provider for larger in-process indexes.
"""

from typing import List, Optional
import numpy as np

from .index import IVectorStore, matches_filters, normalize
from .types import VectorRecord, QueryResult


class FaissVectorStore(IVectorStore):
    """FAISS-backed implementation of IVectorStore."""

    def __init__(self, dimension: int = 384):
        """
        Initialize FAISS vector store.

        Args:
            dimension: Dimension of the vectors (default: 384 for MiniLM embeddings)
        """
        try:
            import faiss
        except ImportError:
            raise ImportError("FAISS not installed. Please install the faiss-cpu package.")

        self.faiss = faiss
        self.dimension = dimension

        # Inner product over unit vectors is cosine similarity; the ID map allows removal
        self.index = faiss.IndexIDMap2(faiss.IndexFlatIP(dimension))

        # FAISS ids are int64; keep both directions of the mapping plus metadata
        self.id_to_vector_index = {}
        self.vector_id_map = {}
        self.metadata = {}
        self.next_vector_index = 0

    def _prepare(self, record: VectorRecord) -> Optional[np.ndarray]:
        vector = normalize(record.vector)
        if vector is None:
            return None
        if vector.shape[0] != self.dimension:
            raise ValueError(f"Vector dimension {vector.shape[0]} does not match expected dimension {self.dimension}")
        return vector

    def add(self, record: VectorRecord) -> None:
        """Add or replace a single vector record."""
        self.batch_add([record])

    def batch_add(self, records: List[VectorRecord]) -> None:
        """Add multiple vector records to the FAISS store."""
        vectors_to_add = []
        vector_ids = []

        for record in records:
            vector = self._prepare(record)
            if vector is None:
                continue
            # Replacing a record drops its previous vector first
            self.delete(record.id)

            vector_index = self.next_vector_index
            self.next_vector_index += 1
            self.id_to_vector_index[record.id] = vector_index
            self.vector_id_map[vector_index] = record.id
            self.metadata[record.id] = dict(record.metadata or {})

            vectors_to_add.append(vector)
            vector_ids.append(vector_index)

        if not vectors_to_add:
            return

        batch_vectors = np.vstack(vectors_to_add).astype(np.float32)
        self.index.add_with_ids(batch_vectors, np.array(vector_ids, dtype=np.int64))

    def search(self, query_vector, top_k: int = 5, type: Optional[str] = None, min_importance: Optional[float] = None) -> List[QueryResult]:
        """Search for similar vectors and return ranked results."""
        if not self.index.ntotal or top_k <= 0:
            return []

        query = normalize(query_vector)
        if query is None:
            return []

        filtered = type is not None or min_importance is not None
        # With filters the whole index is scanned so filtering happens before the cut
        k = self.index.ntotal if filtered else min(top_k, self.index.ntotal)

        scores, indices = self.index.search(query.astype(np.float32).reshape(1, -1), k)

        query_results = []
        for score, vector_index in zip(scores[0], indices[0]):
            record_id = self.vector_id_map.get(int(vector_index))
            if record_id is None:
                continue
            metadata = self.metadata.get(record_id, {})
            if not matches_filters(metadata, type, min_importance):
                continue
            distance = float(np.clip(1.0 - score, 0.0, 2.0))
            query_results.append(QueryResult(id=record_id, distance=distance, metadata=metadata))
            if len(query_results) >= top_k:
                break

        return query_results

    def get_vector(self, record_id: str) -> Optional[np.ndarray]:
        vector_index = self.id_to_vector_index.get(record_id)
        if vector_index is None:
            return None
        return self.index.reconstruct(int(vector_index))

    def delete(self, record_id: str) -> None:
        """Delete a vector record by ID."""
        vector_index = self.id_to_vector_index.pop(record_id, None)
        if vector_index is None:
            return
        self.index.remove_ids(np.array([vector_index], dtype=np.int64))
        self.vector_id_map.pop(vector_index, None)
        self.metadata.pop(record_id, None)

    def clear(self) -> None:
        """Clear all records from the FAISS store."""
        self.index = self.faiss.IndexIDMap2(self.faiss.IndexFlatIP(self.dimension))
        self.id_to_vector_index.clear()
        self.vector_id_map.clear()
        self.metadata.clear()
        self.next_vector_index = 0

    def count(self) -> int:
        return int(self.index.ntotal)
