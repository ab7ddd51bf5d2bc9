"""Tests for EmbeddingService backends."""

import sys
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from mnemo.common.embedding_service import EmbeddingService
from mnemo.common.errors import EmbeddingError
from mnemo.common.interfaces import EmbeddingProvider


def _openai_service(vectors_by_index):
    service = EmbeddingService(mode="openai")
    service._backend = MagicMock()
    data = [SimpleNamespace(index=i, embedding=v) for i, v in vectors_by_index]
    service._backend.embeddings.create.return_value = SimpleNamespace(data=data)
    return service


class TestAvailability:
    def test_openai_without_key_unavailable(self):
        service = EmbeddingService(mode="openai")
        assert not service.is_available
        assert service.model == "text-embedding-3-small"
        with pytest.raises(EmbeddingError, match="not initialized"):
            service.embed(["text"])

    def test_unsupported_mode(self, caplog):
        import logging
        with caplog.at_level(logging.WARNING, logger="mnemo.common.embedding_service"):
            service = EmbeddingService(mode="word2vec")
        assert not service.is_available
        assert "Unsupported embedding mode" in caplog.text

    def test_is_embedding_provider(self):
        assert isinstance(EmbeddingService(mode="openai"), EmbeddingProvider)


class TestEmbed:
    def test_empty_input_makes_no_call(self):
        service = _openai_service([])
        assert service.embed([]) == []
        service._backend.embeddings.create.assert_not_called()

    def test_openai_order_restored(self):
        service = _openai_service([(1, [0.0, 1.0]), (0, [1.0, 0.0])])
        assert service.embed(["a", "b"]) == [[1.0, 0.0], [0.0, 1.0]]

        kwargs = service._backend.embeddings.create.call_args.kwargs
        assert kwargs == {"model": "text-embedding-3-small", "input": ["a", "b"]}

    def test_openai_dimensions_passed(self):
        service = _openai_service([(0, [1.0])])
        service._dimensions = 256
        service.embed(["a"])
        assert service._backend.embeddings.create.call_args.kwargs["dimensions"] == 256

    def test_backend_error_wrapped(self):
        service = _openai_service([])
        service._backend.embeddings.create.side_effect = RuntimeError("timeout")
        with pytest.raises(EmbeddingError, match="timeout"):
            service.embed(["a"])

    def test_femb_numpy_vectors_converted(self):
        model = MagicMock()
        model.embed.return_value = iter([np.array([0.5, 0.25]), np.array([1.0, 0.0])])
        fake_fastembed = SimpleNamespace(TextEmbedding=MagicMock(return_value=model))

        with patch.dict(sys.modules, {"fastembed": fake_fastembed}):
            service = EmbeddingService(mode="femb")

        assert service.is_available
        assert service.model == "BAAI/bge-small-en-v1.5"
        vectors = service.embed(["a", "b"])
        assert vectors == [[0.5, 0.25], [1.0, 0.0]]
        assert all(isinstance(v, list) for v in vectors)

    def test_embed_single(self):
        service = _openai_service([(0, [0.3, 0.4])])
        assert service.embed_single("hello") == [0.3, 0.4]
        with pytest.raises(ValueError):
            service.embed_single("")
