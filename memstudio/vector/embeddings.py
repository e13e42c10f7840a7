"""
Embedding providers: text in, unit-normalized float vector out.
"""

from abc import ABC, abstractmethod
import hashlib
from typing import List
import numpy as np
from sentence_transformers import SentenceTransformer


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector for given text."""
        pass

    def embed_batch(self, texts: List[str]) -> list[list[float]]:
        """Generate embeddings for several texts, in input order."""
        return [self.embed_text(text) for text in texts]

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Identifier reported by the embed endpoints."""
        pass


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for testing purposes.

    This implementation uses a consistent hashing approach to generate
    reproducible embeddings from text, which is useful for testing
    without requiring external model dependencies.
    """

    def __init__(self, dimension: int = 384):
        self.dimension = dimension

    @property
    def model_id(self) -> str:
        return f"deterministic-hash-{self.dimension}"

    def embed_text(self, text: str) -> list[float]:
        """Generate deterministic embedding vector using hash function."""
        # Seed a generator from the text digest so every dimension is populated
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        rng = np.random.default_rng(int.from_bytes(digest[:8], "little"))
        vector = rng.standard_normal(self.dimension)

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm
        return vector.tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    Defaults to all-MiniLM-L6-v2 (384 dimensions). The model is loaded on
    first use.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            self._model = SentenceTransformer(self.model_name)
        return self._model

    @property
    def model_id(self) -> str:
        return self.model_name

    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector using sentence transformers."""
        embedding = self.model.encode(text, convert_to_tensor=False, normalize_embeddings=True)
        return embedding.tolist()

    def embed_batch(self, texts: List[str]) -> list[list[float]]:
        if not texts:
            return []
        embeddings = self.model.encode(texts, convert_to_tensor=False, normalize_embeddings=True)
        return [embedding.tolist() for embedding in embeddings]

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension
