"""
Vector index overlay - derived, advisory layer over the canonical memories table.
"""

from .index import IVectorStore, SimpleInMemoryVectorStore
from .sqlite_store import SqliteVectorStore
from .faiss_store import FaissVectorStore
from .types import VectorRecord, QueryResult
from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding
from .indexing import build_vector_record, memory_text

__all__ = [
    'IVectorStore',
    'SimpleInMemoryVectorStore',
    'SqliteVectorStore',
    'FaissVectorStore',
    'VectorRecord',
    'QueryResult',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'build_vector_record',
    'memory_text',
]
