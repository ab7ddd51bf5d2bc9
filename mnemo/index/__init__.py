"""
Mnemo Index

Multi-view (semantic, lexical, symbolic) index over memory units.
"""

from .hybrid_index import HybridIndex

__all__ = ["HybridIndex"]
