"""
Tests for the Retriever

Tests query analysis, dynamic depth and the reflection loop against
mocked LLM and index collaborators.
"""

import pytest
from unittest.mock import AsyncMock, Mock

from mnemo.common.config import RetrievalConfig
from mnemo.common.errors import MalformedOracleOutputError, OracleError
from mnemo.common.schemas import MatchType, MemoryUnit, SearchResult
from mnemo.retriever.hybrid_retriever import HybridRetriever
from mnemo.retriever.query_processor import (
    QueryAnalysisResponse,
    QueryComplexity,
    QueryProcessor,
    TemporalConstraints,
)


def _unit(unit_id, content="fact", **kwargs):
    return MemoryUnit(id=unit_id, content=content, **kwargs)


def _results(*unit_ids):
    return [SearchResult(unit=_unit(i, f"fact {i}"), score=1.0, match_type=MatchType.HYBRID) for i in unit_ids]


def _analysis(complexity="LOW", **kwargs):
    data = {
        "complexity": complexity,
        "retrieval_rationale": "because",
        "lexical_keywords": ["Starbucks"],
        "semantic_query": "rewritten query",
    }
    data.update(kwargs)
    return QueryAnalysisResponse(**data)


@pytest.fixture
def llm():
    mock = Mock()
    mock.complete_json.return_value = _analysis()
    mock.complete.return_value = "yes"
    return mock


@pytest.fixture
def index():
    mock = Mock()
    mock.hybrid_search = AsyncMock(return_value=_results("a", "b"))
    return mock


class TestQueryProcessor:
    def test_analysis_from_llm(self, llm):
        llm.complete_json.return_value = _analysis("HIGH")

        analysis = QueryProcessor(llm).analyze("Where do Alice and Bob meet?")

        assert analysis.complexity == QueryComplexity.HIGH
        assert analysis.complexity_score == 1.0
        assert analysis.semantic_query == "rewritten query"
        assert analysis.rationale == "because"
        assert analysis.lexical_keywords == ["Starbucks"]
        assert analysis.temporal_constraints is None
        assert llm.complete_json.call_args.args[1] is QueryAnalysisResponse

    @pytest.mark.parametrize("error", [
        OracleError("down"),
        MalformedOracleOutputError("not json", raw="meh"),
        RuntimeError("unexpected"),
    ])
    def test_fallback_on_failure(self, llm, error):
        llm.complete_json.side_effect = error

        analysis = QueryProcessor(llm).analyze("Where do Alice and Bob meet?")

        assert analysis.complexity == QueryComplexity.LOW
        assert analysis.semantic_query == "Where do Alice and Bob meet?"
        assert analysis.rationale == "Default analysis"
        assert analysis.lexical_keywords == ["Where", "Alice", "meet?"]

    def test_fallback_logs_warning(self, llm, caplog):
        import logging
        llm.complete_json.side_effect = OracleError("down")
        with caplog.at_level(logging.WARNING, logger="mnemo.retriever.query_processor"):
            QueryProcessor(llm).analyze("q")
        assert "Query analysis failed" in caplog.text

    def test_temporal_constraints(self, llm):
        llm.complete_json.return_value = _analysis(
            temporal_constraints=TemporalConstraints(start="2025-11-01T00:00:00", end="2025-11-30T23:59:59")
        )
        analysis = QueryProcessor(llm).analyze("What happened in November?")
        assert analysis.temporal_constraints.start == "2025-11-01T00:00:00+00:00"
        assert analysis.temporal_constraints.end == "2025-11-30T23:59:59+00:00"

    def test_empty_temporal_constraints_dropped(self, llm):
        llm.complete_json.return_value = _analysis(temporal_constraints=TemporalConstraints())
        assert QueryProcessor(llm).analyze("q").temporal_constraints is None

    def test_response_schema_rejects_unknown_complexity(self):
        with pytest.raises(ValueError):
            QueryAnalysisResponse(
                complexity="MEDIUM",
                retrieval_rationale="",
                lexical_keywords=[],
                semantic_query="q",
            )


class TestRetrieve:
    @pytest.mark.asyncio
    async def test_low_complexity_depth(self, llm, index):
        retriever = HybridRetriever(llm, index)

        context = await retriever.retrieve("Where do Alice and Bob meet?")

        index.hybrid_search.assert_awaited_once_with("rewritten query", None, 3)
        assert [u.id for u in context.units] == ["a", "b"]
        assert context.rationale == "because"
        llm.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_high_complexity_depth(self, llm, index):
        llm.complete_json.return_value = _analysis("HIGH")
        retriever = HybridRetriever(llm, index, RetrievalConfig(enable_reflection=False))

        await retriever.retrieve("Summarize every meeting")

        index.hybrid_search.assert_awaited_once_with("rewritten query", None, 9)

    @pytest.mark.asyncio
    async def test_temporal_filter_passed(self, llm, index):
        llm.complete_json.return_value = _analysis(temporal_constraints=TemporalConstraints(start="2025-11-01"))
        retriever = HybridRetriever(llm, index)

        await retriever.retrieve("What happened since November?")

        flt = index.hybrid_search.call_args.args[1]
        assert flt.timestamp_range.start == "2025-11-01T00:00:00+00:00"
        assert flt.timestamp_range.end is None

    @pytest.mark.asyncio
    async def test_planning_disabled(self, llm, index):
        retriever = HybridRetriever(llm, index, RetrievalConfig(enable_planning=False))

        context = await retriever.retrieve("raw query")

        llm.complete_json.assert_not_called()
        index.hybrid_search.assert_awaited_once_with("raw query", None, 3)
        assert context.rationale is None

    @pytest.mark.asyncio
    async def test_oracle_failure_still_retrieves(self, llm, index):
        llm.complete_json.side_effect = OracleError("down")
        retriever = HybridRetriever(llm, index)

        context = await retriever.retrieve("Where is Bob?")

        index.hybrid_search.assert_awaited_once_with("Where is Bob?", None, 3)
        assert len(context.units) == 2
        assert context.rationale == "Default analysis"

    @pytest.mark.asyncio
    async def test_empty_index_returns_empty_context(self, llm, index):
        index.hybrid_search.return_value = []
        context = await HybridRetriever(llm, index).retrieve("q")
        assert context.is_empty
        assert context.total_tokens == 0

    @pytest.mark.asyncio
    async def test_token_estimate(self, llm, index):
        unit = _unit("t", "abcd", location="xy", persons=["Al", "Bo"])
        index.hybrid_search.return_value = [SearchResult(unit=unit, score=1.0, match_type=MatchType.HYBRID)]

        context = await HybridRetriever(llm, index).retrieve("q")

        # 4 + 2 + len("Al Bo") = 11 characters
        assert context.total_tokens == 3


class TestReflection:
    @staticmethod
    def _scripted_llm(adequacy="no", follow_ups='["follow up one", "follow up two", "follow up three"]'):
        llm = Mock()
        llm.complete_json.return_value = _analysis("HIGH")

        def complete(prompt, **kwargs):
            if prompt.startswith("Given this query"):
                if isinstance(adequacy, Exception):
                    raise adequacy
                return adequacy
            if isinstance(follow_ups, Exception):
                raise follow_ups
            return follow_ups

        llm.complete.side_effect = complete
        return llm

    @staticmethod
    def _growing_index(initial=("a",)):
        index = Mock()
        counter = iter(range(1000))

        async def hybrid_search(query, filter, top_k):
            if query == "rewritten query":
                return _results(*initial)
            return _results(f"new-{next(counter)}", "a")

        index.hybrid_search = AsyncMock(side_effect=hybrid_search)
        return index

    @pytest.mark.asyncio
    async def test_bounded_by_max_rounds(self):
        llm = self._scripted_llm()
        index = self._growing_index()
        retriever = HybridRetriever(llm, index, RetrievalConfig(max_reflection_rounds=2))

        context = await retriever.retrieve("Compare all meetings")

        adequacy_calls = [c for c in llm.complete.call_args_list if c.args[0].startswith("Given this query")]
        assert len(adequacy_calls) == 2
        assert llm.complete.call_count == 4
        # initial search + 2 rounds x 2 follow-up queries
        assert index.hybrid_search.await_count == 5
        assert len(context.units) == 5

    @pytest.mark.asyncio
    async def test_follow_up_searches_use_depth_three_without_filter(self):
        llm = self._scripted_llm()
        index = self._growing_index()
        await HybridRetriever(llm, index, RetrievalConfig(max_reflection_rounds=1)).retrieve("q")

        follow_up_calls = index.hybrid_search.await_args_list[1:]
        assert [c.args for c in follow_up_calls] == [
            ("follow up one", None, 3),
            ("follow up two", None, 3),
        ]

    @pytest.mark.asyncio
    async def test_deduplicates_by_id(self):
        llm = self._scripted_llm()
        index = self._growing_index()
        context = await HybridRetriever(llm, index, RetrievalConfig(max_reflection_rounds=1)).retrieve("q")

        ids = [u.id for u in context.units]
        assert ids == ["a", "new-0", "new-1"]

    @pytest.mark.asyncio
    async def test_adequate_stops_loop(self):
        llm = self._scripted_llm(adequacy="Yes, that is enough.")
        index = self._growing_index()

        await HybridRetriever(llm, index).retrieve("q")

        assert llm.complete.call_count == 1
        assert index.hybrid_search.await_count == 1

    @pytest.mark.asyncio
    async def test_ten_units_skip_adequacy_call(self):
        llm = self._scripted_llm()
        index = self._growing_index(initial=tuple(str(i) for i in range(10)))

        context = await HybridRetriever(llm, index).retrieve("q")

        llm.complete.assert_not_called()
        assert len(context.units) == 10

    @pytest.mark.asyncio
    async def test_zero_units_is_inadequate(self):
        llm = self._scripted_llm(adequacy="yes")
        index = self._growing_index(initial=())

        context = await HybridRetriever(llm, index, RetrievalConfig(max_reflection_rounds=1)).retrieve("q")

        # No adequacy call with nothing held; follow-ups requested directly
        assert llm.complete.call_count == 1
        assert len(context.units) == 3

    @pytest.mark.asyncio
    async def test_adequacy_error_treated_as_adequate(self):
        llm = self._scripted_llm(adequacy=OracleError("down"))
        index = self._growing_index()

        await HybridRetriever(llm, index).retrieve("q")

        assert index.hybrid_search.await_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("follow_ups", ["not json", "[]", '[1, 2, ""]', OracleError("down")])
    async def test_no_follow_ups_stops_loop(self, follow_ups):
        llm = self._scripted_llm(follow_ups=follow_ups)
        index = self._growing_index()

        context = await HybridRetriever(llm, index).retrieve("q")

        assert llm.complete.call_count == 2
        assert index.hybrid_search.await_count == 1
        assert [u.id for u in context.units] == ["a"]

    @pytest.mark.asyncio
    async def test_low_complexity_never_reflects(self):
        llm = self._scripted_llm()
        llm.complete_json.return_value = _analysis("LOW")
        index = self._growing_index()

        await HybridRetriever(llm, index).retrieve("q")

        llm.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_reflection_disabled(self):
        llm = self._scripted_llm()
        index = self._growing_index()

        await HybridRetriever(llm, index, RetrievalConfig(enable_reflection=False)).retrieve("q")

        llm.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_adequacy_prompt_uses_five_units(self):
        llm = self._scripted_llm(adequacy="yes")
        index = self._growing_index(initial=tuple(str(i) for i in range(7)))

        await HybridRetriever(llm, index).retrieve("q")

        prompt = llm.complete.call_args.args[0]
        assert "fact 4" in prompt
        assert "fact 5" not in prompt
