"""
Retriever - Adaptive Query-Aware Retrieval

Key Components:
- QueryProcessor: LLM query planning with a deterministic fallback
- HybridRetriever: dynamic-depth hybrid search plus bounded reflection
- AnswerGenerator: grounded answer synthesis from retrieved units

Pipeline:
1. Analyze query (complexity, keywords, time bounds, semantic rewrite)
2. Hybrid search with k = floor(k_base * (1 + delta * C_q))
3. Reflect for HIGH-complexity queries
4. Synthesize answer from the retrieved units
"""

from .query_processor import QueryAnalysis, QueryComplexity, QueryProcessor
from .hybrid_retriever import HybridRetriever, RetrievalContext
from .synthesizer import INSUFFICIENT_INFORMATION, AnswerGenerator

__all__ = [
    "QueryAnalysis",
    "QueryComplexity",
    "QueryProcessor",
    "HybridRetriever",
    "RetrievalContext",
    "AnswerGenerator",
    "INSUFFICIENT_INFORMATION",
]
