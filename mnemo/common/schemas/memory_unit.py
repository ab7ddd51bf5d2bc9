"""
Memory Unit Schema

Core principle: a memory unit is one atomic, self-contained fact.
Its content is the unit of retrieval and scoring; the metadata fields feed
the lexical and symbolic views of the index.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Enums
# ============================================================================

class Salience(str, Enum):
    """How important a unit was judged at capture time"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MatchType(str, Enum):
    """Which index view produced a search result"""
    SEMANTIC = "semantic"
    LEXICAL = "lexical"
    SYMBOLIC = "symbolic"
    HYBRID = "hybrid"


# ============================================================================
# Models
# ============================================================================

class MemoryUnit(BaseModel):
    """
    Atomic fact extracted from dialogue.

    `embedding` is attached by the index when missing; nothing else about a
    unit is changed after creation.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    content: str = Field(..., description="Self-contained natural-language statement")
    keywords: List[str] = Field(default_factory=list)
    persons: List[str] = Field(default_factory=list)
    entities: List[str] = Field(default_factory=list)
    timestamp: Optional[str] = Field(default=None, description="ISO-8601 instant, None if unknown")
    location: Optional[str] = None
    topic: Optional[str] = None
    salience: Salience = Field(default=Salience.MEDIUM)
    embedding: Optional[List[float]] = None

    @field_validator("keywords", "persons", "entities", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return [] if value is None else value


class TimestampRange(BaseModel):
    """Inclusive time bounds; a missing bound is open"""
    start: Optional[str] = None
    end: Optional[str] = None

    @property
    def is_bounded(self) -> bool:
        return bool(self.start or self.end)


class QueryFilter(BaseModel):
    """
    Conjunctive metadata predicate.

    List fields match when any filter value is a case-insensitive substring
    of any unit value. A filter with no fields set matches every unit.
    """
    persons: Optional[List[str]] = None
    entities: Optional[List[str]] = None
    timestamp_range: Optional[TimestampRange] = None
    location: Optional[str] = None
    topic: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (
            self.persons
            or self.entities
            or (self.timestamp_range is not None and self.timestamp_range.is_bounded)
            or self.location
            or self.topic
        )


class ExportData(BaseModel):
    """Portable snapshot of a memory space"""
    version: str = "1.0.0"
    exported_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    units: List[MemoryUnit] = Field(default_factory=list)


@dataclass
class SearchResult:
    """A single scored unit from one of the index views"""
    unit: MemoryUnit
    score: float
    match_type: MatchType

    @property
    def unit_id(self) -> str:
        return self.unit.id
