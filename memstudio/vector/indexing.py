"""
Keeping the vector index in step with the memories table.
"""

from typing import Iterable, Optional

import numpy as np

from ..core.schema import MemoryRecord
from ..util.logging import logger
from .embeddings import IEmbeddingProvider
from .index import IVectorStore
from .types import VectorRecord


def memory_text(record: MemoryRecord) -> str:
    """Text that gets embedded for a memory."""
    parts = [record.title]
    if record.summary:
        parts.append(record.summary)
    parts.append(record.content)
    return "\n\n".join(parts)


def build_vector_record(record: MemoryRecord, embedding) -> VectorRecord:
    return VectorRecord(
        id=record.id,
        vector=np.asarray(embedding, dtype=np.float32),
        metadata={
            "type": record.type,
            "title": record.title,
            "importance": record.importance,
            "tags": list(record.tags),
            "related_files": list(record.related_files),
        },
    )


def index_memory(
    record: MemoryRecord,
    vector_store: Optional[IVectorStore],
    embedding_provider: Optional[IEmbeddingProvider],
) -> bool:
    """Embed and (re)index one memory. Failures are logged, never raised."""
    if vector_store is None or embedding_provider is None:
        return False

    try:
        embedding = embedding_provider.embed_text(memory_text(record))
        vector_store.add(build_vector_record(record, embedding))
    except Exception as e:
        # The index is derived data; it must never fail a write to the canonical store
        logger.log_vector_operation("index", record.id, {"error": str(e)}, status="failed")
        return False

    logger.log_vector_operation("index", record.id, {
        "provider": vector_store.__class__.__name__,
        "dimension": len(embedding),
    })
    return True


def remove_memory(memory_id: str, vector_store: Optional[IVectorStore]) -> bool:
    """Drop a memory's vector. Failures are logged, never raised."""
    if vector_store is None:
        return False

    try:
        vector_store.delete(memory_id)
    except Exception as e:
        logger.log_vector_operation("delete", memory_id, {"error": str(e)}, status="failed")
        return False

    logger.log_vector_operation("delete", memory_id)
    return True


def rebuild_index(
    records: Iterable[MemoryRecord],
    vector_store: IVectorStore,
    embedding_provider: IEmbeddingProvider,
    batch_size: int = 32,
) -> int:
    """Clear the index and re-embed every record. Returns the number indexed."""
    vector_store.clear()

    indexed = 0
    batch = []
    for record in records:
        batch.append(record)
        if len(batch) >= batch_size:
            indexed += _index_batch(batch, vector_store, embedding_provider)
            batch = []
    if batch:
        indexed += _index_batch(batch, vector_store, embedding_provider)

    logger.log_operation("vector.rebuild", "success", {
        "provider": vector_store.__class__.__name__,
        "indexed": indexed,
    })
    return indexed


def _index_batch(batch, vector_store: IVectorStore, embedding_provider: IEmbeddingProvider) -> int:
    embeddings = embedding_provider.embed_batch([memory_text(record) for record in batch])
    vector_store.batch_add([
        build_vector_record(record, embedding) for record, embedding in zip(batch, embeddings)
    ])
    return len(batch)
