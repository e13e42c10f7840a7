"""
Relations between memories and the suggestion review queue.
"""

from fastapi import APIRouter, Depends, Query, Response

from ..core.relations import MemoryRelationRepository
from .deps import get_relation_repository
from .schemas import (
    ApproveSuggestionResponse,
    IncomingRelation,
    MemoryRelationsResponse,
    OutgoingRelation,
    RelationCreateRequest,
    RelationResponse,
    RelationSuggestionModel,
    RelationSuggestionsResponse,
    RelationUpdateRequest,
    SuccessResponse,
    SuggestionStatus,
)

router = APIRouter()


# Must stay above "/{memory_id}"
@router.get("/suggestions", response_model=RelationSuggestionsResponse)
def list_suggestions(
    status: SuggestionStatus = Query("pending"),
    relations: MemoryRelationRepository = Depends(get_relation_repository),
):
    return RelationSuggestionsResponse(suggestions=[
        RelationSuggestionModel.from_suggestion(suggestion) for suggestion in relations.suggestions(status=status)
    ])


@router.post("/suggestions/{suggestion_id}/approve", response_model=ApproveSuggestionResponse)
def approve_suggestion(
    suggestion_id: str,
    relations: MemoryRelationRepository = Depends(get_relation_repository),
):
    """Create the suggested relation and mark the suggestion approved."""
    return ApproveSuggestionResponse(relation_id=relations.approve(suggestion_id))


@router.post("/suggestions/{suggestion_id}/reject", response_model=SuccessResponse)
def reject_suggestion(
    suggestion_id: str,
    relations: MemoryRelationRepository = Depends(get_relation_repository),
):
    relations.reject(suggestion_id)
    return SuccessResponse()


@router.get("/{memory_id}", response_model=MemoryRelationsResponse)
def memory_relations(
    memory_id: str,
    relations: MemoryRelationRepository = Depends(get_relation_repository),
):
    outgoing, incoming = relations.for_memory(memory_id)
    return MemoryRelationsResponse(
        outgoing=[OutgoingRelation.from_link(link) for link in outgoing],
        incoming=[IncomingRelation.from_link(link) for link in incoming],
    )


@router.post("", response_model=RelationResponse, status_code=201)
def create_relation(
    request: RelationCreateRequest,
    relations: MemoryRelationRepository = Depends(get_relation_repository),
):
    relation = relations.create(
        source_id=request.source_id,
        target_id=request.target_id,
        type=request.type.value,
        weight=request.weight,
        metadata=request.metadata,
    )
    return RelationResponse.from_relation(relation)


@router.patch("/{relation_id}", response_model=RelationResponse)
def update_relation(
    relation_id: str,
    request: RelationUpdateRequest,
    relations: MemoryRelationRepository = Depends(get_relation_repository),
):
    return RelationResponse.from_relation(relations.update(relation_id, request.changes()))


@router.delete("/{relation_id}", status_code=204)
def delete_relation(
    relation_id: str,
    relations: MemoryRelationRepository = Depends(get_relation_repository),
):
    relations.delete(relation_id)
    return Response(status_code=204)
