"""
Mnemo

Lifelong memory for LLM agents: memory units are indexed across semantic,
lexical and symbolic views and retrieved adaptively to answer questions.

Philosophy:
- A memory unit is one atomic, self-contained fact
- Retrieval depth follows query complexity, not a fixed k
- LLM judgments are heuristic oracles: every call has a fallback

Usage:
    from mnemo.common import load_config, EmbeddingService, LLMClient
    from mnemo.common.schemas import MemoryUnit, QueryFilter
    from mnemo.index import HybridIndex
    from mnemo.retriever import HybridRetriever, AnswerGenerator
    from mnemo.memory import MemorySystem
"""

__version__ = "0.1.0"
