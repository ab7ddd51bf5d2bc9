"""
Embedding Service

On-device embedding generation with fastembed, or remote embeddings via an
OpenAI-compatible endpoint. Each instance owns its own model so several
memory spaces can run side by side in one process.
"""

import logging
from typing import List, Optional

import numpy as np

from .errors import EmbeddingError

logger = logging.getLogger("mnemo.common.embedding_service")

DEFAULT_FEMB_MODEL = "BAAI/bge-small-en-v1.5"
DEFAULT_OPENAI_MODEL = "text-embedding-3-small"


class EmbeddingService:
    """
    Embedding provider for the semantic index layer.

    Modes:
    - "femb": fastembed TextEmbedding, runs locally
    - "openai": OpenAI embeddings API
    """

    def __init__(
        self,
        mode: str = "femb",
        model: str = "",
        dimensions: Optional[int] = None,
        openai_api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        """
        Initialize embedding service.

        Args:
            mode: "femb" or "openai"
            model: Model name (defaults per mode)
            dimensions: Reduced output dimensions (openai models that support it)
            openai_api_key: API key for "openai" mode
            base_url: Alternative OpenAI-compatible endpoint
        """
        self._mode = (mode or "femb").lower()
        self._dimensions = dimensions
        self._backend = None

        if self._mode == "femb":
            self._model = model or DEFAULT_FEMB_MODEL
            try:
                from fastembed import TextEmbedding

                self._backend = TextEmbedding(model_name=self._model)
                logger.info("Initialized fastembed model %s", self._model)
            except ImportError:
                logger.warning("fastembed package not installed")
            except Exception as e:
                logger.warning("Failed to load fastembed model %s: %s", self._model, e)
            return

        if self._mode == "openai":
            self._model = model or DEFAULT_OPENAI_MODEL
            if not openai_api_key:
                logger.info("openai API key not provided, embedding service unavailable")
                return
            try:
                from openai import OpenAI

                self._backend = OpenAI(api_key=openai_api_key, base_url=base_url)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI client: %s", e)
            return

        self._model = model
        logger.warning("Unsupported embedding mode: %s", self._mode)

    @property
    def is_available(self) -> bool:
        """Check if embedding service is available"""
        return self._backend is not None

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def model(self) -> str:
        return self._model

    def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: List of strings to embed

        Returns:
            One vector per text, in input order

        Raises:
            EmbeddingError: if the service is unavailable or the backend fails
        """
        if not texts:
            return []

        if not self._backend:
            raise EmbeddingError(f"Embedding backend not initialized (mode={self._mode})")

        try:
            if self._mode == "femb":
                vectors = list(self._backend.embed(list(texts)))
            else:
                kwargs = {"model": self._model, "input": list(texts)}
                if self._dimensions:
                    kwargs["dimensions"] = self._dimensions
                response = self._backend.embeddings.create(**kwargs)
                # Restore input order
                vectors = [item.embedding for item in sorted(response.data, key=lambda d: d.index)]
        except Exception as e:
            raise EmbeddingError(f"{self._mode} embedding failed: {e}") from e

        # Ensure consistent return type
        return [v.tolist() if isinstance(v, np.ndarray) else list(v) for v in vectors]

    def embed_single(self, text: str) -> List[float]:
        """
        Generate embedding for a single text.

        Args:
            text: String to embed

        Returns:
            Embedding vector
        """
        if not text:
            raise ValueError("Cannot embed empty text")

        return self.embed([text])[0]
