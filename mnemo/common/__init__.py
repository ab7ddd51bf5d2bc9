"""
Mnemo Common Module

Shared infrastructure for the index, retriever and storage layers.
"""

from .config import MnemoConfig, load_config
from .embedding_service import EmbeddingService
from .errors import (
    MnemoError,
    DimensionMismatchError,
    EmbeddingError,
    OracleError,
    MalformedOracleOutputError,
    StorageError,
)
from .interfaces import EmbeddingProvider, LLMProvider, StorageAdapter
from .llm_client import LLMClient

__all__ = [
    "MnemoConfig",
    "load_config",
    "EmbeddingService",
    "LLMClient",
    "EmbeddingProvider",
    "LLMProvider",
    "StorageAdapter",
    "MnemoError",
    "DimensionMismatchError",
    "EmbeddingError",
    "OracleError",
    "MalformedOracleOutputError",
    "StorageError",
]
