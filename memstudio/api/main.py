"""
FastAPI application for Memory Studio.
Services are built once in ``create_app`` and handed to routes through ``app.state``.
"""

import sqlite3
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..core import config
from ..core.dao import MemoryRepository
from ..core.db import Database
from ..core.errors import ApiError, DatabaseError, ValidationError
from ..core.code_graph import CodeGraphRepository
from ..core.relations import MemoryRelationRepository
from ..core.search_service import HybridSearchService
from ..util.logging import logger
from ..vector.indexing import rebuild_index
from ..vector.sqlite_store import SqliteVectorStore
from . import code, embed, memories, relations, search, stats
from .schemas import HealthResponse

API_PREFIX = "/api/v1"

_UNSET = object()


def _field_errors(exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        # Drop the leading "body"/"query" segment so the field reads like the client sent it
        location = [str(part) for part in error.get("loc", ())]
        if location and location[0] in ("body", "query", "path"):
            location = location[1:]
        errors.append({"field": ".".join(location) or "request", "message": error.get("msg", "invalid")})
    return errors


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        logger.log_api_error(request.url.path, exc.name, exc.status_code, exc.message)
        body = exc.to_dict()
        if isinstance(exc, DatabaseError):
            # Driver detail stays in the logs
            body["details"] = None
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        error = ValidationError("Request validation failed", details=_field_errors(exc))
        logger.log_api_error(request.url.path, error.name, error.status_code, error.message)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(sqlite3.Error)
    async def sqlite_error_handler(request: Request, exc: sqlite3.Error):
        logger.log_api_error(request.url.path, "DatabaseError", 500, str(exc))
        return JSONResponse(status_code=500, content=DatabaseError().to_dict())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.log_api_error(request.url.path, "InternalServerError", 500, str(exc))
        return JSONResponse(
            status_code=500,
            content={"error": "InternalServerError", "message": "An unexpected error occurred", "details": None},
        )


def warm_vector_index(repository: MemoryRepository, vector_store, embedding_provider) -> int:
    """Fill an empty in-process index from the memories table.

    The sqlite store persists across restarts; memory and faiss indexes start empty.
    """
    if vector_store is None or embedding_provider is None:
        return 0
    if isinstance(vector_store, SqliteVectorStore) or vector_store.count() > 0:
        return 0
    records = repository.all_records()
    if not records:
        return 0
    try:
        return rebuild_index(records, vector_store, embedding_provider)
    except Exception as e:
        logger.log_vector_operation("warm", "-", {"error": str(e)}, status="failed")
        return 0


def create_app(
    repository: Optional[MemoryRepository] = None,
    vector_store=_UNSET,
    embedding_provider=_UNSET,
) -> FastAPI:
    """Build the API.

    Anything not passed in is created from configuration. Pass
    ``vector_store=None`` / ``embedding_provider=None`` to run keyword-only.
    """
    if repository is None:
        database = Database(config.get_db_path())
        database.init_db()
        repository = MemoryRepository(database)
    if vector_store is _UNSET:
        vector_store = config.get_vector_store()
    if embedding_provider is _UNSET:
        embedding_provider = config.get_embedding_provider()

    for issue in config.validate_config():
        logger.warning(f"Configuration issue: {issue}")

    warm_vector_index(repository, vector_store, embedding_provider)

    app = FastAPI(
        title="Memory Studio API",
        version=config.VERSION,
        description="Local-first knowledge base with hybrid semantic + keyword search",
        docs_url="/docs" if config.debug_enabled() else None,
        redoc_url="/redoc" if config.debug_enabled() else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.repository = repository
    app.state.vector_store = vector_store
    app.state.embedding_provider = embedding_provider
    app.state.search_service = HybridSearchService(repository, vector_store)
    app.state.relation_repository = MemoryRelationRepository(repository.database, clock=repository.clock)
    app.state.code_graph = CodeGraphRepository(repository.database)

    register_exception_handlers(app)

    app.include_router(memories.router, prefix=f"{API_PREFIX}/memories", tags=["memories"])
    app.include_router(search.router, prefix=f"{API_PREFIX}/search", tags=["search"])
    app.include_router(stats.router, prefix=f"{API_PREFIX}/stats", tags=["stats"])
    app.include_router(embed.router, prefix=f"{API_PREFIX}/embed", tags=["embed"])
    app.include_router(relations.router, prefix=f"{API_PREFIX}/relations", tags=["relations"])
    app.include_router(code.router, prefix=f"{API_PREFIX}/code", tags=["code"])

    @app.get("/health", response_model=HealthResponse)
    @app.get(f"{API_PREFIX}/health", response_model=HealthResponse, include_in_schema=False)
    def health_check_endpoint(request: Request):
        """Check system health."""
        repo: MemoryRepository = request.app.state.repository
        db_health = repo.database.health_check()
        memory_count = repo.count() if db_health else 0

        return HealthResponse(
            status="healthy" if db_health else "unhealthy",
            version=config.VERSION,
            db_health=db_health,
            memory_count=memory_count,
            vector_enabled=request.app.state.vector_store is not None,
        )

    logger.log_operation("api.startup", "success", {
        "db_path": repository.database.path,
        "vector_store": vector_store.__class__.__name__ if vector_store is not None else None,
        "embedding_model": embedding_provider.model_id if embedding_provider is not None else None,
    })
    return app
