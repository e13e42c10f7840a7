"""
Request/response models for the REST API.
Field names on the wire follow the dashboard's contract (camelCase where it uses it).
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from dataclasses import asdict
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime

from ..core.schema import (
    CodeGraphStats,
    CodeNode,
    CodeNodeType,
    LinkedRelation,
    MemoryRecord,
    MemoryRelation,
    MemoryStats,
    MemoryType,
    RelationSuggestion,
    RelationType,
    SearchResult,
)


class MemoryCreateRequest(BaseModel):
    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=500)
    type: MemoryType
    content: str = Field(..., min_length=1)
    summary: Optional[str] = None
    importance: float = Field(0.5, ge=0, le=1)
    tags: List[str] = Field(default_factory=list)
    related_files: List[str] = Field(default_factory=list)

    @field_validator('id')
    @classmethod
    def id_must_not_be_blank(cls, v):
        if not v.strip():
            raise ValueError('id cannot be blank')
        return v


class MemoryUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    type: Optional[MemoryType] = None
    content: Optional[str] = Field(None, min_length=1)
    summary: Optional[str] = None
    importance: Optional[float] = Field(None, ge=0, le=1)
    tags: Optional[List[str]] = None
    related_files: Optional[List[str]] = None
    needs_review: Optional[bool] = None

    @field_validator('title', 'type', 'content', 'importance', 'tags', 'related_files', 'needs_review')
    @classmethod
    def not_null_when_present(cls, v):
        # Only summary may be cleared with an explicit null
        if v is None:
            raise ValueError('cannot be null')
        return v

    def changes(self) -> Dict[str, object]:
        """Fields the client actually sent, ready for the repository."""
        data = self.model_dump(exclude_unset=True)
        if "type" in data:
            data["type"] = MemoryType(data["type"]).value
        return data


class MemoryResponse(BaseModel):
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
    access_count: int
    needs_review: bool

    @classmethod
    def from_record(cls, record: MemoryRecord) -> "MemoryResponse":
        return cls(**record.to_dict())


class MemoryListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: List[MemoryResponse]
    next_cursor: Optional[str] = Field(None, alias="nextCursor")
    has_more: bool = Field(..., alias="hasMore")


class SearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    query: str = Field(..., min_length=1)
    embedding: Optional[List[float]] = None
    type: Optional[MemoryType] = None
    limit: int = Field(20, ge=1, le=100)
    hybrid_weight: float = Field(0.7, ge=0, le=1, alias="hybridWeight")
    min_importance: Optional[float] = Field(None, ge=0, le=1, alias="minImportance")


class ScoreBreakdownModel(BaseModel):
    semantic: float
    keyword: float


class SearchResultModel(BaseModel):
    id: str
    memory_id: str
    type: Optional[str]
    title: Optional[str]
    tags: List[str]
    related_files: List[str]
    importance: float
    score: float
    breakdown: ScoreBreakdownModel

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResultModel":
        return cls(**result.to_dict())


class SearchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    results: List[SearchResultModel]
    query: str
    hybrid_weight: float = Field(..., alias="hybridWeight")
    total_matches: int = Field(..., alias="totalMatches")


class SimilarResponse(BaseModel):
    results: List[SearchResultModel]


class TagCount(BaseModel):
    tag: str
    count: int


class StatsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    by_type: Dict[str, int] = Field(..., alias="byType")
    recent_count: int = Field(..., alias="recentCount")
    stale_count: int = Field(..., alias="staleCount")
    avg_importance: float = Field(..., alias="avgImportance")
    top_tags: List[TagCount] = Field(..., alias="topTags")

    @classmethod
    def from_stats(cls, stats: MemoryStats) -> "StatsResponse":
        return cls(
            total=stats.total,
            by_type=stats.by_type,
            recent_count=stats.recent_count,
            stale_count=stats.stale_count,
            avg_importance=stats.avg_importance,
            top_tags=[TagCount(**t) for t in stats.top_tags],
        )


class RecentMemory(BaseModel):
    id: str
    title: str
    type: str
    summary: Optional[str]
    importance: float
    tags: List[str]
    created_at: datetime


class RecentMemoriesResponse(BaseModel):
    memories: List[RecentMemory]


class EmbedRequest(BaseModel):
    text: str = Field(..., min_length=1)


class EmbedBatchRequest(BaseModel):
    texts: List[str] = Field(..., min_length=1, max_length=100)

    @field_validator('texts')
    @classmethod
    def texts_must_not_be_empty(cls, v):
        if any(not text for text in v):
            raise ValueError('texts cannot contain empty strings')
        return v


class EmbedResponse(BaseModel):
    embedding: List[float]
    dimensions: int
    model: str


class EmbedBatchResponse(BaseModel):
    embeddings: List[List[float]]
    dimensions: int
    model: str


class EmbedInfoResponse(BaseModel):
    model: str
    dimensions: int


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    memory_count: int
    vector_enabled: bool


# Error body shared by every failure response
class ValidationFieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: Optional[object] = None


ListSort = Literal["created", "accessed", "importance", "title"]
ListOrder = Literal["asc", "desc"]


class RelationCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    source_id: str = Field(..., min_length=1, alias="sourceId")
    target_id: str = Field(..., min_length=1, alias="targetId")
    type: RelationType
    weight: float = Field(1.0, ge=0, le=1)
    metadata: Optional[Dict[str, Any]] = None


class RelationUpdateRequest(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    weight: Optional[float] = Field(None, ge=0, le=1)
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('weight')
    @classmethod
    def weight_not_null(cls, v):
        if v is None:
            raise ValueError('cannot be null')
        return v

    def changes(self) -> Dict[str, object]:
        return self.model_dump(exclude_unset=True)


class RelationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    source_id: str = Field(..., alias="sourceId")
    target_id: str = Field(..., alias="targetId")
    type: str
    weight: float
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(..., alias="createdAt")

    @classmethod
    def from_relation(cls, relation: MemoryRelation) -> "RelationResponse":
        return cls(
            id=relation.id,
            source_id=relation.source_id,
            target_id=relation.target_id,
            type=relation.type,
            weight=relation.weight,
            metadata=relation.metadata,
            created_at=relation.created_at,
        )


class OutgoingRelation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    target_id: str = Field(..., alias="targetId")
    target_title: str = Field(..., alias="targetTitle")
    target_type: str = Field(..., alias="targetType")
    type: str
    weight: float
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(..., alias="createdAt")

    @classmethod
    def from_link(cls, link: LinkedRelation) -> "OutgoingRelation":
        return cls(
            id=link.relation.id,
            target_id=link.other_id,
            target_title=link.other_title,
            target_type=link.other_type,
            type=link.relation.type,
            weight=link.relation.weight,
            metadata=link.relation.metadata,
            created_at=link.relation.created_at,
        )


class IncomingRelation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    source_id: str = Field(..., alias="sourceId")
    source_title: str = Field(..., alias="sourceTitle")
    source_type: str = Field(..., alias="sourceType")
    type: str
    weight: float
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(..., alias="createdAt")

    @classmethod
    def from_link(cls, link: LinkedRelation) -> "IncomingRelation":
        return cls(
            id=link.relation.id,
            source_id=link.other_id,
            source_title=link.other_title,
            source_type=link.other_type,
            type=link.relation.type,
            weight=link.relation.weight,
            metadata=link.relation.metadata,
            created_at=link.relation.created_at,
        )


class MemoryRelationsResponse(BaseModel):
    outgoing: List[OutgoingRelation]
    incoming: List[IncomingRelation]


class RelationSuggestionModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    source_id: str = Field(..., alias="sourceId")
    source_title: str = Field(..., alias="sourceTitle")
    source_type: str = Field(..., alias="sourceType")
    target_id: str = Field(..., alias="targetId")
    target_title: str = Field(..., alias="targetTitle")
    target_type: str = Field(..., alias="targetType")
    suggested_type: str = Field(..., alias="suggestedType")
    confidence: float
    reason: Optional[str] = None
    detection_method: Optional[str] = Field(None, alias="detectionMethod")
    status: str
    created_at: datetime = Field(..., alias="createdAt")

    @classmethod
    def from_suggestion(cls, suggestion: RelationSuggestion) -> "RelationSuggestionModel":
        return cls(**asdict(suggestion))


class RelationSuggestionsResponse(BaseModel):
    suggestions: List[RelationSuggestionModel]


class ApproveSuggestionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    relation_id: str = Field(..., alias="relationId")


class SuccessResponse(BaseModel):
    success: bool = True


class CodeNodeResponse(BaseModel):
    id: str
    type: str
    name: str
    file_path: str
    start_line: Optional[int] = None
    end_line: Optional[int] = None
    signature: Optional[str] = None
    summary: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_node(cls, node: CodeNode) -> "CodeNodeResponse":
        return cls(**asdict(node))


class CodeNodeListResponse(BaseModel):
    nodes: List[CodeNodeResponse]
    total: int
    limit: int
    offset: int


class CodeLinkModel(BaseModel):
    """A memory's link to a code node."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    code_node_id: str = Field(..., alias="codeNodeId")
    code_name: Optional[str] = Field(None, alias="codeName")
    code_type: Optional[str] = Field(None, alias="codeType")
    file_path: Optional[str] = Field(None, alias="filePath")
    signature: Optional[str] = None
    relation_type: str = Field(..., alias="relationType")
    direction: str
    confidence: float
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(..., alias="createdAt")


class MemoryLinkModel(BaseModel):
    """A code node's link to a memory."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    memory_id: str = Field(..., alias="memoryId")
    memory_title: Optional[str] = Field(None, alias="memoryTitle")
    memory_type: Optional[str] = Field(None, alias="memoryType")
    memory_summary: Optional[str] = Field(None, alias="memorySummary")
    relation_type: str = Field(..., alias="relationType")
    direction: str
    confidence: float
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(..., alias="createdAt")


class CrossLayerResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    memory_id: str = Field(..., alias="memoryId")
    relations: List[CodeLinkModel]


class CodeNodeMemoriesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code_node_id: str = Field(..., alias="codeNodeId")
    relations: List[MemoryLinkModel]


class CodeStatsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_nodes: int = Field(..., alias="totalNodes")
    total_edges: int = Field(..., alias="totalEdges")
    total_cross_layer_relations: int = Field(..., alias="totalCrossLayerRelations")
    nodes_by_type: Dict[str, int] = Field(..., alias="nodesByType")
    edges_by_type: Dict[str, int] = Field(..., alias="edgesByType")

    @classmethod
    def from_stats(cls, stats: CodeGraphStats) -> "CodeStatsResponse":
        return cls(**asdict(stats))


SuggestionStatus = Literal["pending", "approved", "rejected"]
