"""
End-to-end tests for MemorySystem

Wires real storage, index, retriever and generator around a scripted LLM
and a lookup-table embedder.
"""

import os

import pytest
from unittest.mock import Mock, patch

from mnemo.common.config import MnemoConfig, load_config
from mnemo.common.errors import EmbeddingError, OracleError
from mnemo.common.schemas import ExportData, MemoryUnit, QueryFilter
from mnemo.memory import MemorySystem
from mnemo.retriever import INSUFFICIENT_INFORMATION
from mnemo.retriever.synthesizer import AnswerResponse
from mnemo.storage import FileStorage, MemoryStorage


class TableEmbeddings:
    def __init__(self, table=None):
        self.table = table or {}
        self.calls = 0

    def embed(self, texts):
        self.calls += 1
        return [list(self.table.get(t, [0.0, 0.0, 1.0])) for t in texts]


def _llm(answer="Starbucks"):
    """Query analysis fails (LOW fallback); answers come back structured"""
    llm = Mock()

    def complete_json(prompt, schema):
        if schema is AnswerResponse:
            return AnswerResponse(reasoning="context says so", answer=answer)
        raise OracleError("planner offline")

    llm.complete_json.side_effect = complete_json
    llm.complete.return_value = "yes"
    return llm


def _units():
    return [
        MemoryUnit(id="meet", content="Alice meets Bob at Starbucks", persons=["Alice", "Bob"]),
        MemoryUnit(id="report", content="Bob brings a report", persons=["Bob"]),
        MemoryUnit(id="promo", content="Sarah got promoted", persons=["Sarah"]),
    ]


EMBEDDINGS = {
    "Alice meets Bob at Starbucks": [1.0, 0.0, 0.0],
    "Bob brings a report": [0.6, 0.8, 0.0],
    "Sarah got promoted": [0.0, 0.0, 1.0],
    "Where do Alice and Bob meet at Starbucks?": [0.9, 0.3, 0.0],
}


class TestMemorySystem:
    @pytest.mark.asyncio
    async def test_add_units_persists_embeddings(self):
        storage = MemoryStorage()
        memory = MemorySystem(_llm(), TableEmbeddings(EMBEDDINGS), storage=storage)

        await memory.add_units(_units())

        stored = storage.get_unit("meet")
        assert stored.embedding == [1.0, 0.0, 0.0]
        assert memory.get_memory_count() == 3
        assert memory.get_stats() == {"indexed_units": 3}

    @pytest.mark.asyncio
    async def test_ask_answers_from_memory(self):
        llm = _llm()
        memory = MemorySystem(llm, TableEmbeddings(EMBEDDINGS))
        await memory.add_units(_units())

        answer = await memory.ask("Where do Alice and Bob meet at Starbucks?")

        assert answer == "Starbucks"
        answer_prompt = llm.complete_json.call_args.args[0]
        assert "[Context 1]\nContent: Alice meets Bob at Starbucks" in answer_prompt

    @pytest.mark.asyncio
    async def test_ask_with_empty_memory(self):
        llm = _llm()
        memory = MemorySystem(llm, TableEmbeddings())

        assert await memory.ask("Anything?") == INSUFFICIENT_INFORMATION
        # Only the (failed) query analysis reached the LLM
        assert llm.complete_json.call_count == 1

    @pytest.mark.asyncio
    async def test_initialize_warms_index_from_storage(self):
        storage = MemoryStorage()
        storage.save_units(_units())
        embeddings = TableEmbeddings(EMBEDDINGS)
        memory = MemorySystem(_llm(), embeddings, storage=storage)

        assert memory.get_stats() == {"indexed_units": 0}
        await memory.initialize()
        await memory.initialize()

        assert memory.is_initialized
        assert memory.get_stats() == {"indexed_units": 3}
        assert embeddings.calls == 1
        assert not memory.index.needs_rebuild

    @pytest.mark.asyncio
    async def test_search_strips_embeddings(self):
        memory = MemorySystem(_llm(), TableEmbeddings(EMBEDDINGS))
        await memory.add_units(_units())

        results = await memory.search("Where do Alice and Bob meet at Starbucks?", limit=2)
        assert [u.id for u in results] == ["meet", "report"]
        assert all(u.embedding is None for u in results)

        with_vectors = await memory.search("Where do Alice and Bob meet at Starbucks?", include_embeddings=True)
        assert with_vectors[0].embedding == [1.0, 0.0, 0.0]

        # Stripping works on copies
        assert memory.index.get_unit("meet").embedding == [1.0, 0.0, 0.0]

    @pytest.mark.asyncio
    async def test_search_filter_bonus(self):
        memory = MemorySystem(_llm(), TableEmbeddings(EMBEDDINGS))
        await memory.add_units(_units())

        results = await memory.search("Sarah got promoted", filter=QueryFilter(persons=["sarah"]), limit=1)

        assert [u.id for u in results] == ["promo"]

    @pytest.mark.asyncio
    async def test_get_context(self):
        memory = MemorySystem(_llm(), TableEmbeddings(EMBEDDINGS))
        await memory.add_units(_units())

        context = await memory.get_context("Where do Alice and Bob meet at Starbucks?")

        assert len(context.units) == 3
        assert context.units[0].id == "meet"
        assert context.total_tokens > 0
        assert context.rationale == "Default analysis"

    @pytest.mark.asyncio
    async def test_embedding_failure_keeps_pre_embedded(self):
        class Failing:
            def embed(self, texts):
                raise RuntimeError("offline")

        storage = MemoryStorage()
        memory = MemorySystem(_llm(), Failing(), storage=storage)
        pre = MemoryUnit(id="pre", content="already embedded", embedding=[1.0, 0.0])

        with pytest.raises(EmbeddingError):
            await memory.add_units([pre, MemoryUnit(id="bare", content="no vector")])

        assert [u.id for u in storage.get_all_units()] == ["pre"]
        assert memory.get_stats() == {"indexed_units": 1}

    @pytest.mark.asyncio
    async def test_export_import_round_trip(self):
        source = MemorySystem(_llm(), TableEmbeddings(EMBEDDINGS))
        await source.add_units(_units())
        exported = source.export()

        embeddings = TableEmbeddings(EMBEDDINGS)
        target = MemorySystem(_llm(), embeddings)
        await target.import_data(ExportData.model_validate(exported.model_dump()))

        assert target.get_memory_count() == 3
        assert target.get_stats() == {"indexed_units": 3}
        # Exported units carried their vectors
        assert embeddings.calls == 0

    @pytest.mark.asyncio
    async def test_clear(self):
        memory = MemorySystem(_llm(), TableEmbeddings(EMBEDDINGS))
        await memory.add_units(_units())

        memory.clear()

        assert memory.get_all_memories() == []
        assert memory.get_stats() == {"indexed_units": 0}
        assert not memory.is_initialized


class TestFromConfig:
    def test_memory_backend(self):
        config = MnemoConfig()
        with patch("mnemo.memory.EmbeddingService") as service_cls:
            memory = MemorySystem.from_config(config)

        assert isinstance(memory.storage, MemoryStorage)
        assert service_cls.call_args.kwargs["mode"] == "femb"
        assert memory.retriever.config is config.retrieval
        assert memory.index.config is config.index

    def test_file_backend(self, tmp_path):
        config = MnemoConfig()
        config.storage.backend = "file"
        config.storage.path = str(tmp_path / "memory.json")

        with patch("mnemo.memory.EmbeddingService"):
            memory = MemorySystem.from_config(config)

        assert isinstance(memory.storage, FileStorage)
        assert memory.storage.path == tmp_path / "memory.json"

    def test_llm_client_from_config(self):
        config = MnemoConfig()
        config.llm.provider = "openai"
        config.llm.openai_model = "gpt-4o"

        with patch("mnemo.memory.EmbeddingService"), \
             patch("mnemo.memory.LLMClient") as client_cls:
            MemorySystem.from_config(config)

        kwargs = client_cls.call_args.kwargs
        assert kwargs["provider"] == "openai"
        assert kwargs["model"] == "gpt-4o"

    def test_openai_embedding_mode_uses_openai_model(self, tmp_path):
        with patch.dict(os.environ, {"MNEMO_EMBEDDING_MODE": "openai", "OPENAI_API_KEY": "sk-test"}, clear=True):
            config = load_config(tmp_path / "missing.json")

        memory = MemorySystem.from_config(config)

        assert memory.index._embeddings.mode == "openai"
        assert memory.index._embeddings.model == "text-embedding-3-small"
