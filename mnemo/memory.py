"""
Memory System

Facade wiring storage, the hybrid index, the retriever and the answer
generator into one memory space.

    memory = MemorySystem.from_config(load_config())
    await memory.add_units(units)
    answer = await memory.ask("Where do Alice and Bob meet?")
"""

import logging
from typing import Any, Dict, List, Optional

from .common.config import IndexConfig, MnemoConfig, RetrievalConfig
from .common.embedding_service import EmbeddingService
from .common.errors import EmbeddingError
from .common.interfaces import EmbeddingProvider, LLMProvider, StorageAdapter
from .common.llm_client import LLMClient
from .common.schemas import ExportData, MemoryUnit, QueryFilter
from .index import HybridIndex
from .retriever import AnswerGenerator, HybridRetriever, RetrievalContext
from .storage import FileStorage, MemoryStorage

logger = logging.getLogger("mnemo.memory")


class MemorySystem:
    """
    One independent memory space.

    Storage is the source of truth; the index is warmed from it lazily on
    first use and kept in step by add_units, import_data and clear.
    """

    def __init__(
        self,
        llm: LLMProvider,
        embeddings: EmbeddingProvider,
        storage: Optional[StorageAdapter] = None,
        index_config: Optional[IndexConfig] = None,
        retrieval_config: Optional[RetrievalConfig] = None,
    ):
        """
        Initialize the memory system.

        Args:
            llm: Oracle for query planning, reflection and answers
            embeddings: Provider for unit and query embeddings
            storage: Persistence backend (in-memory if None)
            index_config: Hybrid index settings
            retrieval_config: Retrieval settings
        """
        self.storage = storage if storage is not None else MemoryStorage()
        self.index = HybridIndex(embeddings, index_config)
        self.retriever = HybridRetriever(llm, self.index, retrieval_config)
        self.generator = AnswerGenerator(llm)
        self._initialized = False

    @classmethod
    def from_config(cls, config: MnemoConfig) -> "MemorySystem":
        """Build a memory system with the concrete backends named in config"""
        llm = LLMClient(
            provider=config.llm.provider,
            model=config.llm.model,
            anthropic_api_key=config.llm.anthropic_api_key,
            openai_api_key=config.llm.openai_api_key,
            google_api_key=config.llm.google_api_key,
            default_temperature=config.llm.temperature,
            default_max_tokens=config.llm.max_tokens,
        )
        embeddings = EmbeddingService(
            mode=config.embedding.mode,
            model=config.embedding.model,
            dimensions=config.embedding.dimensions,
            openai_api_key=config.embedding.openai_api_key,
        )

        backend = config.storage.backend.lower()
        if backend == "file":
            storage = FileStorage(config.storage.path)
        else:
            if backend != "memory":
                logger.warning("Unknown storage backend %r, using in-memory storage", backend)
            storage = MemoryStorage()

        return cls(
            llm,
            embeddings,
            storage=storage,
            index_config=config.index,
            retrieval_config=config.retrieval,
        )

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Warm the index from storage; no-op once done"""
        if self._initialized:
            return

        units = self.storage.get_all_units()
        if units:
            await self.index.add_units(units)
            self.index.rebuild_lexical_index()
            logger.info("Warmed index with %d units from storage", len(units))

        self._initialized = True

    async def add_units(self, units: List[MemoryUnit]) -> None:
        """
        Index units, then persist them with their embeddings.

        Raises:
            EmbeddingError: if embedding fails; units that already carried an
                embedding are still indexed and persisted
        """
        if not units:
            return

        await self.initialize()

        try:
            await self.index.add_units(units)
        except EmbeddingError:
            self.storage.save_units([u for u in units if u.embedding])
            raise

        self.storage.save_units(units)

    async def ask(self, question: str) -> str:
        """Answer a question from memory"""
        await self.initialize()
        context = await self.retriever.retrieve(question)
        return self.generator.generate(question, context)

    async def search(
        self,
        query: str,
        filter: Optional[QueryFilter] = None,
        limit: Optional[int] = None,
        include_embeddings: bool = False,
    ) -> List[MemoryUnit]:
        """
        Hybrid search without answer generation.

        Args:
            query: Search query
            filter: Optional metadata filter (scoring bonus)
            limit: Maximum results (index default if None)
            include_embeddings: Keep embeddings on the returned copies

        Returns:
            Copies of the matching units, best first
        """
        await self.initialize()
        results = await self.index.hybrid_search(query, filter, limit)

        units = []
        for result in results:
            unit = result.unit.model_copy(deep=True)
            if not include_embeddings:
                unit.embedding = None
            units.append(unit)
        return units

    async def get_context(self, query: str) -> RetrievalContext:
        """Retrieval context for custom answer generation"""
        await self.initialize()
        return await self.retriever.retrieve(query)

    def get_all_memories(self) -> List[MemoryUnit]:
        return self.storage.get_all_units()

    def get_memory_count(self) -> int:
        return len(self.storage.get_all_units())

    def get_stats(self) -> Dict[str, Any]:
        return {"indexed_units": self.index.size}

    def export(self) -> ExportData:
        return self.storage.export()

    async def import_data(self, data: ExportData) -> None:
        """Load exported units into the index and storage"""
        await self.initialize()
        await self.index.add_units(data.units)
        self.index.rebuild_lexical_index()
        self.storage.import_data(data)

    def clear(self) -> None:
        """Delete every memory from storage and the index"""
        self.storage.clear()
        self.index.clear()
        self._initialized = False
