"""
Query Processor

Asks the LLM for a retrieval plan: query complexity, lexical keywords,
temporal bounds and a declarative rewrite for the semantic layer.
Falls back to a fixed LOW-complexity plan whenever the LLM fails or
answers in the wrong shape.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from ..common.interfaces import LLMProvider
from ..common.schemas import TimestampRange
from ..common.temporal import parse_timestamp

logger = logging.getLogger("mnemo.retriever.query_processor")


class QueryComplexity(str, Enum):
    """Coarse query complexity used to size retrieval depth"""
    LOW = "LOW"  # direct fact lookup
    HIGH = "HIGH"  # aggregation, temporal comparison, synthesis


@dataclass
class QueryAnalysis:
    """Per-query retrieval plan; never persisted"""
    complexity: QueryComplexity
    semantic_query: str
    rationale: str = ""
    lexical_keywords: List[str] = field(default_factory=list)
    temporal_constraints: Optional[TimestampRange] = None

    @property
    def complexity_score(self) -> float:
        return 1.0 if self.complexity == QueryComplexity.HIGH else 0.0


class TemporalConstraints(BaseModel):
    start: Optional[str] = None
    end: Optional[str] = None


class QueryAnalysisResponse(BaseModel):
    """Shape the LLM must return for a retrieval plan"""
    complexity: QueryComplexity
    retrieval_rationale: str
    lexical_keywords: List[str]
    temporal_constraints: Optional[TemporalConstraints] = None
    semantic_query: str


QUERY_ANALYSIS_PROMPT = """Analyze the following user query and generate a retrieval plan. Your objective is to retrieve sufficient information while minimizing unnecessary context usage.

USER QUERY:
{query}

INSTRUCTIONS:
1. Query Complexity Estimation:
   - Assign "LOW" if the query can be answered via direct fact lookup or a single memory unit.
   - Assign "HIGH" if the query requires aggregation across multiple events, temporal comparison, or synthesis of patterns.

2. Retrieval Signals:
   - Lexical layer: extract exact keywords or entity names.
   - Temporal layer: infer absolute time ranges if relevant (use ISO 8601 format).
   - Semantic layer: rewrite the query into a declarative form suitable for semantic matching.

OUTPUT FORMAT (JSON):
{{
  "complexity": "HIGH",
  "retrieval_rationale": "The query requires reasoning over multiple temporally separated events.",
  "lexical_keywords": ["Starbucks", "Bob"],
  "temporal_constraints": {{
    "start": "2025-11-01T00:00:00",
    "end": "2025-11-30T23:59:59"
  }},
  "semantic_query": "The user is asking about the scheduled meeting with Bob, including location and time."
}}

Return ONLY the JSON object."""


class QueryProcessor:
    """
    Turns a user query into a QueryAnalysis.

    The LLM's judgment is a best-effort heuristic: any LLM failure
    (including malformed output) yields `fallback_analysis(query)`.
    """

    def __init__(self, llm: LLMProvider):
        self._llm = llm

    def analyze(self, query: str) -> QueryAnalysis:
        """
        Analyze a query with the LLM.

        Args:
            query: Raw user query

        Returns:
            QueryAnalysis from the LLM, or the fallback plan on failure
        """
        prompt = QUERY_ANALYSIS_PROMPT.format(query=query)

        try:
            response = self._llm.complete_json(prompt, QueryAnalysisResponse)
        except Exception as e:
            logger.warning("Query analysis failed, using default plan: %s", e)
            return self.fallback_analysis(query)

        return QueryAnalysis(
            complexity=response.complexity,
            semantic_query=response.semantic_query or query,
            rationale=response.retrieval_rationale,
            lexical_keywords=list(response.lexical_keywords),
            temporal_constraints=self._to_range(response.temporal_constraints),
        )

    @staticmethod
    def fallback_analysis(query: str) -> QueryAnalysis:
        """LOW complexity, original query, words longer than 3 characters as keywords"""
        return QueryAnalysis(
            complexity=QueryComplexity.LOW,
            semantic_query=query,
            rationale="Default analysis",
            lexical_keywords=[w for w in query.split() if len(w) > 3],
        )

    @staticmethod
    def _to_range(constraints: Optional[TemporalConstraints]) -> Optional[TimestampRange]:
        if constraints is None or not (constraints.start or constraints.end):
            return None
        # Relative expressions ("yesterday", "last week") become ISO instants
        start = parse_timestamp(constraints.start) if constraints.start else None
        end = parse_timestamp(constraints.end) if constraints.end else None
        return TimestampRange(start=start, end=end)
