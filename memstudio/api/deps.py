"""
Request-scoped access to the services wired up in ``create_app``.
"""

from typing import Optional

from fastapi import Request

from ..core.code_graph import CodeGraphRepository
from ..core.dao import MemoryRepository
from ..core.errors import ApiError
from ..core.relations import MemoryRelationRepository
from ..core.search_service import HybridSearchService
from ..vector.embeddings import IEmbeddingProvider
from ..vector.index import IVectorStore


def get_repository(request: Request) -> MemoryRepository:
    return request.app.state.repository


def get_relation_repository(request: Request) -> MemoryRelationRepository:
    return request.app.state.relation_repository


def get_code_graph(request: Request) -> CodeGraphRepository:
    return request.app.state.code_graph


def get_search_service(request: Request) -> HybridSearchService:
    return request.app.state.search_service


def get_vector_store(request: Request) -> Optional[IVectorStore]:
    return request.app.state.vector_store


def get_embedding_provider(request: Request) -> Optional[IEmbeddingProvider]:
    return request.app.state.embedding_provider


def require_embedding_provider(request: Request) -> IEmbeddingProvider:
    provider = request.app.state.embedding_provider
    if provider is None:
        raise ApiError("Embedding provider is not configured", status_code=503)
    return provider
