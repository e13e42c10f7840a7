"""
Hybrid search endpoints.
"""

from fastapi import APIRouter, Depends, Query

from ..core.search_service import HybridSearchService
from .deps import get_search_service
from .schemas import SearchRequest, SearchResponse, SearchResultModel, SimilarResponse

router = APIRouter()


@router.post("", response_model=SearchResponse)
def hybrid_search(request: SearchRequest, service: HybridSearchService = Depends(get_search_service)):
    """Semantic + keyword search.

    Semantic ranking only runs when the client sends a non-empty ``embedding``
    (see ``POST /embed``); otherwise results are keyword-only.
    """
    outcome = service.search(
        query=request.query,
        embedding=request.embedding,
        type=request.type.value if request.type else None,
        min_importance=request.min_importance,
        limit=request.limit,
        hybrid_weight=request.hybrid_weight,
    )
    return SearchResponse(
        results=[SearchResultModel.from_result(r) for r in outcome.results],
        query=outcome.query,
        hybrid_weight=outcome.hybrid_weight,
        total_matches=outcome.total_matches,
    )


@router.post("/similar/{memory_id}", response_model=SimilarResponse)
def similar_memories(
    memory_id: str,
    limit: int = Query(10, ge=1, le=100),
    service: HybridSearchService = Depends(get_search_service),
):
    results = service.find_similar(memory_id, limit=limit)
    return SimilarResponse(results=[SearchResultModel.from_result(r) for r in results])
