"""
Typed records used across the store, the search core and the API layer.
SQLite rows are decoded into these once, at the repository boundary.
"""

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

T = TypeVar("T")


class MemoryType(str, Enum):
    DECISION = "decision"
    SOLUTION = "solution"
    PATTERN = "pattern"
    ARCHITECTURE = "architecture"
    NOTE = "note"


MEMORY_TYPES = [t.value for t in MemoryType]


def epoch_to_datetime(value: Union[int, float, str, None]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def decode_json_list(raw: Optional[str]) -> List[str]:
    """Decode a JSON array column, tolerating NULL and hand-edited garbage."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return [str(item) for item in value] if isinstance(value, list) else []


@dataclass
class MemoryRecord:
    id: str
    title: str
    type: str
    content: str
    summary: Optional[str]
    importance: float
    tags: List[str]
    related_files: List[str]
    created_at: datetime
    accessed_at: datetime
    access_count: int = 0
    needs_review: bool = False

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "MemoryRecord":
        return cls(
            id=row["id"],
            title=row["title"],
            type=row["type"],
            content=row["content"],
            summary=row["summary"],
            importance=float(row["importance"]),
            tags=decode_json_list(row["tags"]),
            related_files=decode_json_list(row["related_files"]),
            created_at=epoch_to_datetime(row["created_at"]),
            accessed_at=epoch_to_datetime(row["accessed_at"]),
            access_count=int(row["access_count"]),
            needs_review=bool(row["needs_review"]),
        )

    def sort_value(self, sort: str) -> Union[str, float, int]:
        """Value of the list sort key as stored in the database."""
        if sort == "created":
            return int(self.created_at.timestamp())
        if sort == "accessed":
            return int(self.accessed_at.timestamp())
        if sort == "importance":
            return self.importance
        return self.title

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "content": self.content,
            "summary": self.summary,
            "importance": self.importance,
            "tags": list(self.tags),
            "related_files": list(self.related_files),
            "created_at": self.created_at.isoformat(),
            "accessed_at": self.accessed_at.isoformat(),
            "access_count": self.access_count,
            "needs_review": self.needs_review,
        }


@dataclass
class KeywordCandidate:
    """A record matched by substring search, with its weighted match score."""
    id: str
    title: str
    type: str
    importance: float
    tags: List[str]
    related_files: List[str]
    match_score: int

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "KeywordCandidate":
        return cls(
            id=row["id"],
            title=row["title"],
            type=row["type"],
            importance=float(row["importance"]),
            tags=decode_json_list(row["tags"]),
            related_files=decode_json_list(row["related_files"]),
            match_score=int(row["match_score"]),
        )


@dataclass
class ScoreBreakdown:
    semantic: float = 0.0
    keyword: float = 0.0


@dataclass
class SearchResult:
    id: str
    memory_id: str
    type: str
    title: str
    tags: List[str]
    related_files: List[str]
    importance: float
    score: float
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "memory_id": self.memory_id,
            "type": self.type,
            "title": self.title,
            "tags": list(self.tags),
            "related_files": list(self.related_files),
            "importance": self.importance,
            "score": self.score,
            "breakdown": {"semantic": self.breakdown.semantic, "keyword": self.breakdown.keyword},
        }


@dataclass
class SearchOutcome:
    results: List[SearchResult]
    query: str
    hybrid_weight: float
    total_matches: int


@dataclass
class Page(Generic[T]):
    data: List[T]
    next_cursor: Optional[str]
    has_more: bool


@dataclass
class MemoryStats:
    total: int
    by_type: Dict[str, int]
    recent_count: int
    stale_count: int
    avg_importance: float
    top_tags: List[Dict[str, Any]]


class RelationType(str, Enum):
    REFERENCES = "references"
    IMPLEMENTS = "implements"
    EXTENDS = "extends"
    RELATED_TO = "related_to"
    SUPERSEDES = "supersedes"
    REQUIRES = "requires"


RELATION_TYPES = [t.value for t in RelationType]


class CodeNodeType(str, Enum):
    FUNCTION = "function"
    CLASS = "class"
    INTERFACE = "interface"
    TYPE = "type"
    MODULE = "module"
    PACKAGE = "package"


def decode_json_object(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode a JSON object column; NULL and garbage come back as ``None``."""
    if not raw:
        return None
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


@dataclass
class MemoryRelation:
    id: str
    source_id: str
    target_id: str
    type: str
    weight: float
    metadata: Optional[Dict[str, Any]]
    created_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "MemoryRelation":
        return cls(
            id=row["id"],
            source_id=row["source_id"],
            target_id=row["target_id"],
            type=row["type"],
            weight=float(row["weight"]),
            metadata=decode_json_object(row["metadata"]),
            created_at=epoch_to_datetime(row["created_at"]),
        )


@dataclass
class LinkedRelation:
    """A relation seen from one memory, carrying the title and type of the memory at the other end."""
    relation: MemoryRelation
    other_id: str
    other_title: str
    other_type: str


@dataclass
class RelationSuggestion:
    id: str
    source_id: str
    source_title: str
    source_type: str
    target_id: str
    target_title: str
    target_type: str
    suggested_type: str
    confidence: float
    reason: Optional[str]
    detection_method: Optional[str]
    status: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "RelationSuggestion":
        return cls(
            id=row["id"],
            source_id=row["source_id"],
            source_title=row["source_title"],
            source_type=row["source_type"],
            target_id=row["target_id"],
            target_title=row["target_title"],
            target_type=row["target_type"],
            suggested_type=row["suggested_type"],
            confidence=float(row["confidence"]),
            reason=row["reason"],
            detection_method=row["detection_method"],
            status=row["status"],
            created_at=epoch_to_datetime(row["created_at"]),
        )


@dataclass
class CodeNode:
    id: str
    type: str
    name: str
    file_path: str
    start_line: Optional[int]
    end_line: Optional[int]
    signature: Optional[str]
    summary: Optional[str]
    metadata: Dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "CodeNode":
        return cls(
            id=row["id"],
            type=row["type"],
            name=row["name"],
            file_path=row["file_path"],
            start_line=row["start_line"],
            end_line=row["end_line"],
            signature=row["signature"],
            summary=row["summary"],
            metadata=decode_json_object(row["metadata"]) or {},
            created_at=epoch_to_datetime(row["created_at"]),
            updated_at=epoch_to_datetime(row["updated_at"]),
        )


@dataclass
class CrossLayerRelation:
    """Link between a memory and a code node. The joined columns depend on which side was queried."""
    id: str
    memory_id: str
    code_node_id: str
    relation_type: str
    direction: str
    confidence: float
    metadata: Dict[str, Any]
    created_at: datetime
    code_name: Optional[str] = None
    code_type: Optional[str] = None
    file_path: Optional[str] = None
    signature: Optional[str] = None
    memory_title: Optional[str] = None
    memory_type: Optional[str] = None
    memory_summary: Optional[str] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "CrossLayerRelation":
        keys = row.keys()
        joined = {
            name: row[name]
            for name in ("code_name", "code_type", "file_path", "signature", "memory_title", "memory_type", "memory_summary")
            if name in keys
        }
        return cls(
            id=row["id"],
            memory_id=row["memory_id"],
            code_node_id=row["code_node_id"],
            relation_type=row["relation_type"],
            direction=row["direction"],
            confidence=float(row["confidence"]),
            metadata=decode_json_object(row["metadata"]) or {},
            created_at=epoch_to_datetime(row["created_at"]),
            **joined,
        )


@dataclass
class CodeGraphStats:
    total_nodes: int
    total_edges: int
    total_cross_layer_relations: int
    nodes_by_type: Dict[str, int]
    edges_by_type: Dict[str, int]
