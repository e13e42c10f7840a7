"""
Memory CRUD and cursor-paginated listing.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse

from ..core.dao import MemoryRepository
from ..vector.indexing import index_memory, remove_memory
from .deps import get_embedding_provider, get_repository, get_vector_store
from .schemas import (
    ListOrder,
    ListSort,
    MemoryCreateRequest,
    MemoryListResponse,
    MemoryResponse,
    MemoryType,
    MemoryUpdateRequest,
)

router = APIRouter()


@router.get("", response_model=MemoryListResponse)
def list_memories(
    type: Optional[MemoryType] = Query(None, description="Filter by memory type"),
    tags: Optional[str] = Query(None, description="Comma separated tags; matches any"),
    sort: ListSort = Query("created"),
    order: ListOrder = Query("desc"),
    cursor: Optional[str] = Query(None, description="Opaque cursor from a previous page"),
    limit: int = Query(50, ge=1, le=100),
    repository: MemoryRepository = Depends(get_repository),
):
    """List memories with seek pagination. A malformed cursor restarts from the first page."""
    tag_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else None
    page = repository.list(
        type=type.value if type else None,
        tags=tag_list,
        sort=sort,
        order=order,
        cursor=cursor,
        limit=limit,
    )

    response = MemoryListResponse(
        data=[MemoryResponse.from_record(record) for record in page.data],
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )
    payload = response.model_dump(mode="json", by_alias=True)
    if payload["nextCursor"] is None:
        del payload["nextCursor"]
    return JSONResponse(payload)


@router.post("", response_model=MemoryResponse, status_code=201)
def create_memory(
    request: MemoryCreateRequest,
    repository: MemoryRepository = Depends(get_repository),
    vector_store=Depends(get_vector_store),
    embedding_provider=Depends(get_embedding_provider),
):
    record = repository.create(
        id=request.id,
        title=request.title,
        type=request.type.value,
        content=request.content,
        summary=request.summary,
        importance=request.importance,
        tags=request.tags,
        related_files=request.related_files,
    )
    index_memory(record, vector_store, embedding_provider)
    return MemoryResponse.from_record(record)


@router.get("/{memory_id}", response_model=MemoryResponse)
def get_memory(memory_id: str, repository: MemoryRepository = Depends(get_repository)):
    """Fetch one memory; counts as an access."""
    return MemoryResponse.from_record(repository.get_by_id(memory_id))


@router.patch("/{memory_id}", response_model=MemoryResponse)
def update_memory(
    memory_id: str,
    request: MemoryUpdateRequest,
    repository: MemoryRepository = Depends(get_repository),
    vector_store=Depends(get_vector_store),
    embedding_provider=Depends(get_embedding_provider),
):
    changes = request.changes()
    record = repository.update(memory_id, changes)
    if changes:
        index_memory(record, vector_store, embedding_provider)
    return MemoryResponse.from_record(record)


@router.delete("/{memory_id}", status_code=204)
def delete_memory(
    memory_id: str,
    repository: MemoryRepository = Depends(get_repository),
    vector_store=Depends(get_vector_store),
):
    repository.delete(memory_id)
    remove_memory(memory_id, vector_store)
    return Response(status_code=204)
