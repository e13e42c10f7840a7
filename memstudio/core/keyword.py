"""
Keyword channel of hybrid search: weighted substring matching over title, content and summary.
"""

from typing import List, Optional

from .dao import MemoryRepository
from .schema import KeywordCandidate


class KeywordMatcher:
    """Finds keyword candidates through the record store. Read-only.

    No stemming or tokenization: a record matches when a field contains the
    whole query, case-insensitively. Candidates come back best match first;
    equal scores keep store order, which the ranker's stable sort preserves.
    """

    def __init__(self, repository: MemoryRepository):
        self.repository = repository

    def match(
        self,
        query: str,
        type: Optional[str] = None,
        min_importance: Optional[float] = None,
        limit: int = 40,
    ) -> List[KeywordCandidate]:
        if not query:
            return []
        candidates = self.repository.query_by_text(query, type=type, min_importance=min_importance, limit=limit)
        return [c for c in candidates if c.match_score > 0]
