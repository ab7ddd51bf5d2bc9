"""
Hybrid Index

Multi-view index over memory units:
1. Semantic layer: dense embeddings scored with cosine similarity
2. Lexical layer: BM25 over unit content
3. Symbolic layer: metadata predicates (persons, entities, time, location, topic)

hybrid_search combines the three into one ranking:
    S(q, m) = alpha * cos(E(q), v_m) + beta * BM25_norm(q, m) + gamma * [filter holds]
"""

import asyncio
import logging
import threading
from typing import Dict, List, Optional

from ..common.config import IndexConfig
from ..common.errors import EmbeddingError
from ..common.filters import matches_filter
from ..common.interfaces import EmbeddingProvider
from ..common.schemas import MatchType, MemoryUnit, QueryFilter, SearchResult
from ..common.similarity import (
    BM25Params,
    BM25Scorer,
    compute_hybrid_score,
    cosine_similarity,
)

logger = logging.getLogger("mnemo.index.hybrid_index")


class HybridIndex:
    """
    Live collection of memory units with semantic, lexical and symbolic search.

    Each instance owns its own state, so several memory spaces can coexist in
    one process. Mutations and reads of the unit map are serialized by a
    re-entrant lock; embedding calls run outside the lock.
    """

    def __init__(self, embeddings: EmbeddingProvider, config: Optional[IndexConfig] = None):
        """
        Initialize the index.

        Args:
            embeddings: Provider used for unit and query embeddings
            config: Search depths and hybrid weights (defaults if None)
        """
        self._embeddings = embeddings
        self.config = config or IndexConfig()
        self._units: Dict[str, MemoryUnit] = {}
        self._bm25 = self._new_scorer()
        # Unit order the BM25 document indices refer to
        self._snapshot: List[MemoryUnit] = []
        self._needs_rebuild = False
        self._lock = threading.RLock()

    def _new_scorer(self) -> BM25Scorer:
        return BM25Scorer(BM25Params(k1=self.config.bm25_k1, b=self.config.bm25_b))

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._units)

    @property
    def needs_rebuild(self) -> bool:
        return self._needs_rebuild

    # =========================================================================
    # Mutation
    # =========================================================================

    async def add_units(self, units: List[MemoryUnit]) -> None:
        """
        Add or overwrite units, embedding those that lack a vector.

        All missing embeddings are requested in one call. If that call fails,
        none of them are attached and EmbeddingError is raised; units that
        already carried an embedding are still upserted.

        Args:
            units: Units to index; an existing id is replaced (last write wins)

        Raises:
            EmbeddingError: if the embedding provider fails for the batch
        """
        if not units:
            return

        pending = [u for u in units if not u.embedding]

        if pending:
            try:
                vectors = await self._embed([u.content for u in pending])
            except EmbeddingError:
                logger.error("Embedding failed for %d units", len(pending), exc_info=True)
                self._upsert([u for u in units if u.embedding])
                raise

            for unit, vector in zip(pending, vectors):
                unit.embedding = vector

        self._upsert(units)

    def _upsert(self, units: List[MemoryUnit]) -> None:
        if not units:
            return
        with self._lock:
            for unit in units:
                self._units[unit.id] = unit
            self._needs_rebuild = True
        logger.debug("Upserted %d units (index size %d)", len(units), len(self._units))

    async def _embed(self, texts: List[str]) -> List[List[float]]:
        try:
            vectors = await asyncio.to_thread(self._embeddings.embed, texts)
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Embedding provider failed: {e}") from e

        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Embedding provider returned {len(vectors)} vectors for {len(texts)} texts"
            )
        return vectors

    def remove_unit(self, unit_id: str) -> None:
        with self._lock:
            if self._units.pop(unit_id, None) is not None:
                self._needs_rebuild = True

    def clear(self) -> None:
        """Drop every unit and the lexical model"""
        with self._lock:
            self._units.clear()
            self._bm25 = self._new_scorer()
            self._snapshot = []
            self._needs_rebuild = False

    def rebuild_lexical_index(self) -> None:
        """Snapshot the current units and rebuild BM25 over their content"""
        with self._lock:
            self._snapshot = list(self._units.values())
            self._bm25.add_documents([u.content for u in self._snapshot])
            self._needs_rebuild = False
        logger.debug("Rebuilt lexical index over %d units", len(self._snapshot))

    # =========================================================================
    # Search
    # =========================================================================

    async def semantic_search(self, query: str, top_k: Optional[int] = None) -> List[SearchResult]:
        """
        Rank embedded units by cosine similarity to the query.

        Units without an embedding are skipped. An index with no embedded
        units returns [] without calling the embedding provider.
        """
        k = self.config.semantic_top_k if top_k is None else top_k

        with self._lock:
            candidates = [u for u in self._units.values() if u.embedding]
        if not candidates:
            return []

        query_vector = (await self._embed([query]))[0]

        results = [
            SearchResult(unit=u, score=cosine_similarity(query_vector, u.embedding), match_type=MatchType.SEMANTIC)
            for u in candidates
        ]
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:k]

    def keyword_search(self, query: str, top_k: Optional[int] = None) -> List[SearchResult]:
        """BM25 search over unit content, rebuilding the lexical layer if stale"""
        k = self.config.keyword_top_k if top_k is None else top_k

        with self._lock:
            if self._needs_rebuild:
                self.rebuild_lexical_index()
            snapshot = self._snapshot
            ranked = self._bm25.top_k(query, k)

        return [
            SearchResult(unit=snapshot[i], score=score, match_type=MatchType.LEXICAL)
            for i, score in ranked
        ]

    def structured_search(self, filter: QueryFilter, top_k: Optional[int] = None) -> List[SearchResult]:
        """Units matching the filter, each with a fixed score of 1.0"""
        k = self.config.structured_top_k if top_k is None else top_k

        with self._lock:
            units = list(self._units.values())

        results = []
        for unit in units:
            if len(results) >= k:
                break
            if matches_filter(unit, filter):
                results.append(SearchResult(unit=unit, score=1.0, match_type=MatchType.SYMBOLIC))
        return results

    async def hybrid_search(
        self,
        query: str,
        filter: Optional[QueryFilter] = None,
        top_k: Optional[int] = None,
    ) -> List[SearchResult]:
        """
        Combined semantic + lexical + symbolic search.

        Both ranked layers over-fetch 2 * top_k candidates. Lexical scores are
        divided by max(best BM25 score, 1). Every unit seen by either layer is
        scored; missing on one axis counts as 0 there. Without a filter the
        symbolic bonus is added to every candidate, which leaves the ranking
        unchanged.

        Args:
            query: Natural-language query
            filter: Optional metadata predicate used as a bonus, not a gate
            top_k: Maximum results (defaults to the semantic depth)

        Returns:
            Results with match_type HYBRID, best first
        """
        k = self.config.semantic_top_k if top_k is None else top_k
        fetch_k = k * 2

        semantic_results, keyword_results = await asyncio.gather(
            self.semantic_search(query, fetch_k),
            asyncio.to_thread(self.keyword_search, query, fetch_k),
        )

        max_bm25 = max([r.score for r in keyword_results] + [1.0])

        semantic_scores = {r.unit_id: r.score for r in semantic_results}
        lexical_scores = {r.unit_id: r.score / max_bm25 for r in keyword_results}

        # Union in first-seen order
        candidate_ids = list(dict.fromkeys(list(semantic_scores) + list(lexical_scores)))

        results = []
        with self._lock:
            for unit_id in candidate_ids:
                unit = self._units.get(unit_id)
                if unit is None:
                    continue
                score = compute_hybrid_score(
                    semantic_scores.get(unit_id, 0.0),
                    lexical_scores.get(unit_id, 0.0),
                    matches_filter(unit, filter),
                    alpha=self.config.semantic_weight,
                    beta=self.config.lexical_weight,
                    gamma=self.config.symbolic_weight,
                )
                results.append(SearchResult(unit=unit, score=score, match_type=MatchType.HYBRID))

        results.sort(key=lambda r: r.score, reverse=True)
        logger.debug(
            "Hybrid search: %d semantic, %d lexical, %d combined, returning %d",
            len(semantic_results), len(keyword_results), len(results), min(k, len(results)),
        )
        return results[:k]

    def get_all_units(self) -> List[MemoryUnit]:
        with self._lock:
            return list(self._units.values())

    def get_unit(self, unit_id: str) -> Optional[MemoryUnit]:
        with self._lock:
            return self._units.get(unit_id)
