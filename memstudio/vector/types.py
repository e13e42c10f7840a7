"""
Vector index records. The index is derived data; the memories table stays canonical.
"""

from typing import Dict, Optional
import numpy as np
from dataclasses import dataclass, field


@dataclass
class VectorRecord:
    """Represents a vector record with metadata."""

    id: str
    """Identifier of the owning memory (``memory_id``)"""

    vector: Optional[np.ndarray]
    """The embedding of the memory text"""

    metadata: Dict[str, object] = field(default_factory=dict)
    """Summary projection of the memory: type, title, importance, tags, related_files"""


@dataclass
class QueryResult:
    """Represents a search result from vector store."""

    id: str
    """Identifier of the matching memory"""

    distance: float
    """Cosine distance to the query (0 = same direction, 2 = opposite)"""

    metadata: Dict[str, object] = field(default_factory=dict)
    """Metadata associated with the matched record"""

    @property
    def score(self) -> float:
        """Cosine similarity, ``1 - distance``."""
        return 1.0 - self.distance
