"""
Read access to the code graph and its links to memories.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..core.code_graph import CodeGraphRepository
from .deps import get_code_graph
from .schemas import (
    CodeLinkModel,
    CodeNodeListResponse,
    CodeNodeMemoriesResponse,
    CodeNodeResponse,
    CodeNodeType,
    CodeStatsResponse,
    CrossLayerResponse,
    MemoryLinkModel,
)

router = APIRouter()


@router.get("/nodes", response_model=CodeNodeListResponse)
def list_code_nodes(
    type: Optional[CodeNodeType] = Query(None),
    file: Optional[str] = Query(None, description="Substring of the file path"),
    search: Optional[str] = Query(None, description="Substring of name, signature or summary"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    code_graph: CodeGraphRepository = Depends(get_code_graph),
):
    nodes, total = code_graph.list_nodes(
        type=type.value if type else None,
        file=file,
        search=search,
        limit=limit,
        offset=offset,
    )
    return CodeNodeListResponse(
        nodes=[CodeNodeResponse.from_node(node) for node in nodes],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/node", response_model=CodeNodeResponse)
def get_code_node(
    id: str = Query(..., min_length=1),
    code_graph: CodeGraphRepository = Depends(get_code_graph),
):
    return CodeNodeResponse.from_node(code_graph.get_node(id))


@router.get("/cross-layer", response_model=CrossLayerResponse)
def code_for_memory(
    memory_id: str = Query(..., alias="memoryId", min_length=1),
    code_graph: CodeGraphRepository = Depends(get_code_graph),
):
    return CrossLayerResponse(
        memory_id=memory_id,
        relations=[
            CodeLinkModel(
                id=link.id,
                code_node_id=link.code_node_id,
                code_name=link.code_name,
                code_type=link.code_type,
                file_path=link.file_path,
                signature=link.signature,
                relation_type=link.relation_type,
                direction=link.direction,
                confidence=link.confidence,
                metadata=link.metadata,
                created_at=link.created_at,
            )
            for link in code_graph.cross_layer_for_memory(memory_id)
        ],
    )


@router.get("/memories", response_model=CodeNodeMemoriesResponse)
def memories_for_code_node(
    code_node_id: str = Query(..., alias="codeNodeId", min_length=1),
    code_graph: CodeGraphRepository = Depends(get_code_graph),
):
    return CodeNodeMemoriesResponse(
        code_node_id=code_node_id,
        relations=[
            MemoryLinkModel(
                id=link.id,
                memory_id=link.memory_id,
                memory_title=link.memory_title,
                memory_type=link.memory_type,
                memory_summary=link.memory_summary,
                relation_type=link.relation_type,
                direction=link.direction,
                confidence=link.confidence,
                metadata=link.metadata,
                created_at=link.created_at,
            )
            for link in code_graph.memories_for_node(code_node_id)
        ],
    )


@router.get("/stats", response_model=CodeStatsResponse)
def code_graph_stats(code_graph: CodeGraphRepository = Depends(get_code_graph)):
    return CodeStatsResponse.from_stats(code_graph.stats())
