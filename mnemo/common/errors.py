"""
Error types shared across Mnemo.

Index mutations and vector math raise; oracle errors are caught by the
retriever and synthesizer and replaced with their documented fallbacks.
"""

from typing import Optional


class MnemoError(Exception):
    """Base class for all Mnemo errors"""


class DimensionMismatchError(MnemoError, ValueError):
    """Two vectors of different length were compared"""

    def __init__(self, left: int, right: int):
        self.left = left
        self.right = right
        super().__init__(f"Vector dimensions must match: {left} vs {right}")


class EmbeddingError(MnemoError):
    """The embedding provider failed for a batch"""


class OracleError(MnemoError):
    """The LLM oracle failed or is unavailable"""


class MalformedOracleOutputError(OracleError):
    """The LLM answered, but not in the requested shape"""

    def __init__(self, message: str, raw: Optional[str] = None):
        self.raw = raw
        super().__init__(message)


class StorageError(MnemoError):
    """Stored memory data could not be read or written"""
