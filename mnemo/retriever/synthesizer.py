"""
Synthesizer

Grounded answer generation from a retrieval context.
The LLM sees only the retrieved units and must answer from them.
"""

import logging

from pydantic import BaseModel

from ..common.interfaces import LLMProvider
from ..common.schemas import render_context
from .hybrid_retriever import RetrievalContext

logger = logging.getLogger("mnemo.retriever.synthesizer")

INSUFFICIENT_INFORMATION = (
    "I do not have enough information in my memory to answer this question."
)


class AnswerResponse(BaseModel):
    reasoning: str
    answer: str


ANSWER_PROMPT = """Answer the user's question based on the provided context.

User Question: {query}

Relevant Context:
{context}

Requirements:
1. First, think through the reasoning process
2. Then provide a very CONCISE answer (short phrase about core information)
3. Answer must be based ONLY on the provided context
4. All dates in the response must be formatted as 'DD Month YYYY' when appropriate
5. Return your response in JSON format

Output Format:
{{
  "reasoning": "Brief explanation of your thought process",
  "answer": "Concise answer in a short phrase"
}}

Example:
Question: "When will they meet?"
Context: "Alice suggested meeting Bob at 2025-11-16T14:00:00..."

Output:
{{
  "reasoning": "The context explicitly states the meeting time as 2025-11-16T14:00:00",
  "answer": "16 November 2025 at 2:00 PM"
}}

Return ONLY the JSON, no other text."""


class AnswerGenerator:
    """
    Generates answers from retrieved memory units.

    Never raises: an empty context short-circuits to a fixed message, a
    malformed structured answer falls back to a plain completion, and a
    failed plain completion falls back to the fixed message.
    """

    def __init__(self, llm: LLMProvider):
        self._llm = llm

    def generate(self, query: str, context: RetrievalContext) -> str:
        """
        Answer a question from a retrieval context.

        Args:
            query: The user's question
            context: Units returned by the retriever

        Returns:
            Answer text
        """
        if not context.units:
            return INSUFFICIENT_INFORMATION

        prompt = ANSWER_PROMPT.format(query=query, context=render_context(context.units))

        try:
            return self._llm.complete_json(prompt, AnswerResponse).answer
        except Exception as e:
            logger.warning("Structured answer failed, falling back to plain completion: %s", e)

        try:
            return self._llm.complete(prompt, temperature=0.1)
        except Exception as e:
            logger.warning("Answer generation failed: %s", e)
            return INSUFFICIENT_INFORMATION
