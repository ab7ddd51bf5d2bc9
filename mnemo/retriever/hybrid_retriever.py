"""
Hybrid Retriever

Adaptive, query-aware retrieval over the hybrid index:
1. Plan the query (complexity, keywords, time bounds, semantic rewrite)
2. Size the result set: k_dyn = floor(k_base * (1 + delta * C_q))
3. Run hybrid search
4. For HIGH-complexity queries, reflect: check adequacy, ask for follow-up
   searches, merge new units; bounded by max_reflection_rounds

Every LLM call here has a fallback, so retrieve() never fails because the
oracle did.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional

from ..common.config import RetrievalConfig
from ..common.interfaces import LLMProvider
from ..common.llm_utils import parse_llm_json_list
from ..common.schemas import MemoryUnit, QueryFilter
from ..common.similarity import compute_dynamic_k
from ..index import HybridIndex
from .query_processor import QueryAnalysis, QueryComplexity, QueryProcessor

logger = logging.getLogger("mnemo.retriever.hybrid_retriever")

# Above this many units the adequacy check is skipped
ADEQUATE_UNIT_COUNT = 10
ADEQUACY_CONTEXT_UNITS = 5
FOLLOW_UP_CONTEXT_UNITS = 3
MAX_FOLLOW_UP_QUERIES = 2
FOLLOW_UP_TOP_K = 3

ADEQUACY_PROMPT = """Given this query and the available context, determine if there is sufficient information to answer.

Query: {query}

Available Context:
{context}

Is this context sufficient? Reply with ONLY "yes" or "no"."""

FOLLOW_UP_PROMPT = """Original query: {query}

Current context available:
{context}

What additional information might be needed? Generate 1-2 follow-up search queries that could help answer the original query. Return as JSON array of strings.

Example: ["meeting time with Alice", "location of the discussion"]"""


@dataclass
class RetrievalContext:
    """Units retrieved for one query, most relevant first"""
    units: List[MemoryUnit] = field(default_factory=list)
    total_tokens: int = 0
    rationale: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.units


class HybridRetriever:
    """
    Retrieval controller: query planning, dynamic depth and reflection.

    Each instance carries its own configuration and index; nothing is
    shared between instances.
    """

    def __init__(
        self,
        llm: LLMProvider,
        index: HybridIndex,
        config: Optional[RetrievalConfig] = None,
    ):
        """
        Initialize retriever.

        Args:
            llm: Oracle for planning, adequacy checks and follow-up queries
            index: Hybrid index to search
            config: Retrieval settings (defaults if None)
        """
        self._llm = llm
        self._index = index
        self.config = config or RetrievalConfig()
        self._query_processor = QueryProcessor(llm)

    async def retrieve(self, query: str) -> RetrievalContext:
        """
        Retrieve the memory units relevant to a query.

        Args:
            query: Natural-language question

        Returns:
            RetrievalContext (possibly empty)
        """
        analysis: Optional[QueryAnalysis] = None
        filter: Optional[QueryFilter] = None

        if self.config.enable_planning:
            analysis = self.analyze_query(query)
            if analysis.temporal_constraints is not None:
                filter = QueryFilter(timestamp_range=analysis.temporal_constraints)

        complexity_score = analysis.complexity_score if analysis else 0.0
        dynamic_k = compute_dynamic_k(
            self.config.base_k, complexity_score, self.config.complexity_delta
        )
        search_query = analysis.semantic_query if analysis else query
        logger.debug("Retrieving with k=%d for %r", dynamic_k, search_query)

        results = await self._index.hybrid_search(search_query, filter, dynamic_k)
        units = [r.unit for r in results]

        if (
            self.config.enable_reflection
            and analysis is not None
            and analysis.complexity == QueryComplexity.HIGH
        ):
            units = await self._reflection_search(query, units)

        return RetrievalContext(
            units=units,
            total_tokens=self._estimate_tokens(units),
            rationale=analysis.rationale if analysis else None,
        )

    def analyze_query(self, query: str) -> QueryAnalysis:
        """Plan a query; falls back to a LOW-complexity plan on any LLM failure"""
        return self._query_processor.analyze(query)

    # =========================================================================
    # Reflection
    # =========================================================================

    async def _reflection_search(
        self,
        original_query: str,
        initial_units: List[MemoryUnit],
    ) -> List[MemoryUnit]:
        """Backfill evidence with follow-up searches until adequate or out of rounds"""
        units = list(initial_units)
        seen_ids = {u.id for u in units}

        for round_no in range(self.config.max_reflection_rounds):
            if self._check_adequacy(original_query, units):
                logger.debug("Reflection round %d: context adequate", round_no + 1)
                break

            queries = self._generate_additional_queries(original_query, units)
            if not queries:
                logger.debug("Reflection round %d: no follow-up queries", round_no + 1)
                break

            for follow_up in queries:
                results = await self._index.hybrid_search(follow_up, None, FOLLOW_UP_TOP_K)
                for result in results:
                    if result.unit_id not in seen_ids:
                        seen_ids.add(result.unit_id)
                        units.append(result.unit)

            logger.debug("Reflection round %d: %d units held", round_no + 1, len(units))

        return units

    def _check_adequacy(self, query: str, units: List[MemoryUnit]) -> bool:
        """Ask the LLM whether the held units suffice; adequate on error"""
        if not units:
            return False
        if len(units) >= ADEQUATE_UNIT_COUNT:
            return True

        context = "\n".join(u.content for u in units[:ADEQUACY_CONTEXT_UNITS])
        prompt = ADEQUACY_PROMPT.format(query=query, context=context)

        try:
            response = self._llm.complete(prompt, temperature=0.1)
        except Exception as e:
            logger.warning("Adequacy check failed, treating context as adequate: %s", e)
            return True

        return "yes" in response.lower()

    def _generate_additional_queries(self, query: str, units: List[MemoryUnit]) -> List[str]:
        """Up to two follow-up search strings; empty on any failure"""
        context = "\n".join(u.content for u in units[:FOLLOW_UP_CONTEXT_UNITS])
        prompt = FOLLOW_UP_PROMPT.format(query=query, context=context)

        try:
            response = self._llm.complete(prompt, temperature=0.3)
        except Exception as e:
            logger.warning("Follow-up query generation failed: %s", e)
            return []

        queries = [q for q in parse_llm_json_list(response) if isinstance(q, str) and q.strip()]
        return queries[:MAX_FOLLOW_UP_QUERIES]

    @staticmethod
    def _estimate_tokens(units: List[MemoryUnit]) -> int:
        # ~4 characters per token
        total_chars = sum(
            len(u.content) + len(u.location or "") + len(" ".join(u.persons))
            for u in units
        )
        return math.ceil(total_chars / 4)
