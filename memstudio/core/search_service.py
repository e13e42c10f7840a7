"""
Hybrid retrieval: vector similarity and keyword relevance merged into one ranked list.

Scoring
- semantic: ``1 - distance / max_distance`` over the returned candidates,
  with ``max_distance`` floored at 0.01
- keyword: ``match_score / max_match_score``, floored at 1
- both channels: ``semantic * w + keyword * (1 - w)``
- keyword only: ``keyword * (1 - w)``; a semantic-only hit keeps its
  unweighted semantic score
"""

from typing import Dict, List, Optional, Sequence

from .config import DEFAULT_HYBRID_WEIGHT, DEFAULT_SEARCH_LIMIT, MAX_PAGE_LIMIT
from .dao import MemoryRepository
from .errors import NotFoundError, ValidationError
from .keyword import KeywordMatcher
from .schema import KeywordCandidate, ScoreBreakdown, SearchOutcome, SearchResult
from ..util.logging import logger
from ..vector.index import IVectorStore
from ..vector.types import QueryResult

MIN_MAX_DISTANCE = 0.01
MIN_MAX_KEYWORD_MATCHES = 1


def semantic_results(candidates: Sequence[QueryResult]) -> List[SearchResult]:
    """Seed results from nearest-neighbour candidates (step one of the merge)."""
    if not candidates:
        return []

    max_distance = max([c.distance for c in candidates] + [MIN_MAX_DISTANCE])
    results = []
    for candidate in candidates:
        metadata = candidate.metadata or {}
        semantic_score = 1 - candidate.distance / max_distance
        results.append(SearchResult(
            id=candidate.id,
            memory_id=candidate.id,
            type=metadata.get("type"),
            title=metadata.get("title"),
            tags=list(metadata.get("tags") or []),
            related_files=list(metadata.get("related_files") or []),
            importance=float(metadata.get("importance") or 0.0),
            score=semantic_score,
            breakdown=ScoreBreakdown(semantic=semantic_score, keyword=0.0),
        ))
    return results


def merge_keyword_results(
    results: List[SearchResult],
    candidates: Sequence[KeywordCandidate],
    hybrid_weight: float,
) -> List[SearchResult]:
    """Fold keyword candidates into ``results`` in place and return it."""
    if not candidates:
        return results

    max_matches = max([c.match_score for c in candidates] + [MIN_MAX_KEYWORD_MATCHES])
    by_memory_id: Dict[str, SearchResult] = {r.memory_id: r for r in results}

    for candidate in candidates:
        keyword_score = candidate.match_score / max_matches
        existing = by_memory_id.get(candidate.id)

        if existing is not None:
            existing.breakdown.keyword = keyword_score
            existing.score = existing.breakdown.semantic * hybrid_weight + keyword_score * (1 - hybrid_weight)
        else:
            result = SearchResult(
                id=candidate.id,
                memory_id=candidate.id,
                type=candidate.type,
                title=candidate.title,
                tags=list(candidate.tags),
                related_files=list(candidate.related_files),
                importance=candidate.importance,
                score=keyword_score * (1 - hybrid_weight),
                breakdown=ScoreBreakdown(semantic=0.0, keyword=keyword_score),
            )
            results.append(result)
            by_memory_id[candidate.id] = result

    return results


def rank(results: List[SearchResult]) -> List[SearchResult]:
    """Order by score, highest first. Equal scores keep merge order (sorted() is stable)."""
    return sorted(results, key=lambda r: r.score, reverse=True)


class HybridSearchService:
    """Runs hybrid searches against an injected record store and vector store."""

    def __init__(
        self,
        repository: MemoryRepository,
        vector_store: Optional[IVectorStore] = None,
        keyword_matcher: Optional[KeywordMatcher] = None,
    ):
        self.repository = repository
        self.vector_store = vector_store
        self.keyword_matcher = keyword_matcher or KeywordMatcher(repository)

    def _semantic_candidates(
        self,
        embedding: Sequence[float],
        top_k: int,
        type: Optional[str],
        min_importance: Optional[float],
    ) -> List[QueryResult]:
        if self.vector_store is None:
            return []
        try:
            return self.vector_store.search(embedding, top_k=top_k, type=type, min_importance=min_importance)
        except Exception as e:
            # Losing the semantic channel degrades to keyword-only ranking
            logger.log_vector_operation("search", "-", {"error": str(e)}, status="failed")
            return []

    def search(
        self,
        query: str,
        embedding: Optional[Sequence[float]] = None,
        type: Optional[str] = None,
        min_importance: Optional[float] = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
        hybrid_weight: float = DEFAULT_HYBRID_WEIGHT,
    ) -> SearchOutcome:
        if not query:
            raise ValidationError("query must not be empty", details=[{"field": "query", "message": "required"}])
        if not 1 <= limit <= MAX_PAGE_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_LIMIT}", details=[{"field": "limit", "message": "out of range"}])
        if not 0 <= hybrid_weight <= 1:
            raise ValidationError("hybridWeight must be between 0 and 1", details=[{"field": "hybridWeight", "message": "out of range"}])

        # Over-fetch both channels so re-ranking has room after the merge
        candidate_limit = limit * 2

        semantic = []
        if embedding is not None and len(embedding) > 0:
            semantic = self._semantic_candidates(embedding, candidate_limit, type, min_importance)

        keyword = self.keyword_matcher.match(query, type=type, min_importance=min_importance, limit=candidate_limit)

        results = merge_keyword_results(semantic_results(semantic), keyword, hybrid_weight)
        ranked = rank(results)

        logger.log_search(query, len(semantic), len(keyword), min(len(ranked), limit), hybrid_weight)
        return SearchOutcome(
            results=ranked[:limit],
            query=query,
            hybrid_weight=hybrid_weight,
            total_matches=len(ranked),
        )

    def find_similar(self, memory_id: str, limit: int = 10) -> List[SearchResult]:
        """Nearest memories to a stored memory's own vector, excluding itself."""
        if self.repository.peek(memory_id) is None:
            raise NotFoundError(f"Memory with id '{memory_id}' not found")
        if self.vector_store is None:
            return []

        vector = self.vector_store.get_vector(memory_id)
        if vector is None:
            return []

        candidates = [
            c for c in self._semantic_candidates(vector, limit + 1, None, None)
            if c.id != memory_id
        ][:limit]

        results = []
        for candidate in candidates:
            metadata = candidate.metadata or {}
            results.append(SearchResult(
                id=candidate.id,
                memory_id=candidate.id,
                type=metadata.get("type"),
                title=metadata.get("title"),
                tags=list(metadata.get("tags") or []),
                related_files=list(metadata.get("related_files") or []),
                importance=float(metadata.get("importance") or 0.0),
                score=candidate.score,
                breakdown=ScoreBreakdown(semantic=candidate.score, keyword=0.0),
            ))
        return results
