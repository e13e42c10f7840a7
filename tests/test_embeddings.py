"""
Embedding providers.
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

from memstudio.vector.embeddings import (
    DeterministicHashEmbedding,
    IEmbeddingProvider,
    SentenceTransformerEmbedding,
)


def test_embedding_interface():
    """Test that the hash provider implements the interface correctly."""
    embedder = DeterministicHashEmbedding(dimension=384)

    assert isinstance(embedder, IEmbeddingProvider)
    assert embedder.get_dimension() == 384
    assert embedder.model_id == "deterministic-hash-384"


def test_deterministic_embedding():
    """Same text, same vector, across instances."""
    vector1 = DeterministicHashEmbedding().embed_text("Hello, world!")
    vector2 = DeterministicHashEmbedding().embed_text("Hello, world!")

    assert vector1 == vector2
    assert len(vector1) == 384


def test_different_inputs_produce_different_vectors():
    embedder = DeterministicHashEmbedding()
    assert embedder.embed_text("Hello, world!") != embedder.embed_text("Goodbye, world!")


@pytest.mark.parametrize("dimension", [1, 8, 384, 768])
def test_vectors_are_unit_length(dimension):
    vector = DeterministicHashEmbedding(dimension=dimension).embed_text("unit")
    assert len(vector) == dimension
    assert np.linalg.norm(vector) == pytest.approx(1.0)


def test_empty_text_still_embeds():
    assert len(DeterministicHashEmbedding(dimension=16).embed_text("")) == 16


def test_embed_batch_keeps_order():
    embedder = DeterministicHashEmbedding(dimension=16)
    texts = ["one", "two", "three"]
    assert embedder.embed_batch(texts) == [embedder.embed_text(t) for t in texts]
    assert embedder.embed_batch([]) == []


def test_sentence_transformer_loads_model_lazily(monkeypatch):
    model = MagicMock()
    model.encode.side_effect = lambda texts, **kwargs: (
        np.ones((len(texts), 3)) if isinstance(texts, list) else np.ones(3)
    )
    model.get_sentence_embedding_dimension.return_value = 3
    loader = MagicMock(return_value=model)
    monkeypatch.setattr("memstudio.vector.embeddings.SentenceTransformer", loader)

    embedder = SentenceTransformerEmbedding("tiny-model")
    assert embedder.model_id == "tiny-model"
    loader.assert_not_called()

    assert embedder.embed_text("hello") == [1.0, 1.0, 1.0]
    assert embedder.embed_batch(["a", "b"]) == [[1.0, 1.0, 1.0], [1.0, 1.0, 1.0]]
    assert embedder.get_dimension() == 3
    loader.assert_called_once_with("tiny-model")
    _, kwargs = model.encode.call_args
    assert kwargs["normalize_embeddings"] is True
