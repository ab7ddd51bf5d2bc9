"""
Mnemo Schemas

Memory units, query filters and search results shared by every stage.
"""

from .memory_unit import (
    MemoryUnit,
    Salience,
    MatchType,
    TimestampRange,
    QueryFilter,
    ExportData,
    SearchResult,
)
from .templates import render_context, render_context_block

__all__ = [
    "MemoryUnit",
    "Salience",
    "MatchType",
    "TimestampRange",
    "QueryFilter",
    "ExportData",
    "SearchResult",
    "render_context",
    "render_context_block",
]
