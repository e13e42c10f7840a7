"""
Dashboard statistics.
"""

from fastapi import APIRouter, Depends

from ..core.dao import MemoryRepository
from .deps import get_repository
from .schemas import RecentMemoriesResponse, RecentMemory, StatsResponse

router = APIRouter()


@router.get("", response_model=StatsResponse)
def memory_stats(repository: MemoryRepository = Depends(get_repository)):
    return StatsResponse.from_stats(repository.stats())


@router.get("/recent", response_model=RecentMemoriesResponse)
def recent_memories(repository: MemoryRepository = Depends(get_repository)):
    return RecentMemoriesResponse(memories=[
        RecentMemory(
            id=record.id,
            title=record.title,
            type=record.type,
            summary=record.summary,
            importance=record.importance,
            tags=record.tags,
            created_at=record.created_at,
        )
        for record in repository.recent(limit=10)
    ])
