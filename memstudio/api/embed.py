"""
Embedding endpoints used by the dashboard to build query vectors.
"""

from fastapi import APIRouter, Depends

from ..vector.embeddings import IEmbeddingProvider
from .deps import require_embedding_provider
from .schemas import EmbedBatchRequest, EmbedBatchResponse, EmbedInfoResponse, EmbedRequest, EmbedResponse

router = APIRouter()


@router.post("", response_model=EmbedResponse)
def embed_text(request: EmbedRequest, provider: IEmbeddingProvider = Depends(require_embedding_provider)):
    return EmbedResponse(
        embedding=provider.embed_text(request.text),
        dimensions=provider.get_dimension(),
        model=provider.model_id,
    )


@router.post("/batch", response_model=EmbedBatchResponse)
def embed_batch(request: EmbedBatchRequest, provider: IEmbeddingProvider = Depends(require_embedding_provider)):
    return EmbedBatchResponse(
        embeddings=provider.embed_batch(request.texts),
        dimensions=provider.get_dimension(),
        model=provider.model_id,
    )


@router.get("/info", response_model=EmbedInfoResponse)
def embed_info(provider: IEmbeddingProvider = Depends(require_embedding_provider)):
    return EmbedInfoResponse(model=provider.model_id, dimensions=provider.get_dimension())
