"""
Similarity computation utilities

Cosine similarity and BM25 scoring for hybrid retrieval, plus the score
combination and dynamic-depth formulas used by the retriever.
"""

import math
import re
from collections import Counter
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from .errors import DimensionMismatchError

_NON_WORD_RE = re.compile(r"[^\w\s]")


def _as_vectors(a: Sequence[float], b: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    v1 = np.asarray(a, dtype=float)
    v2 = np.asarray(b, dtype=float)
    if v1.shape != v2.shape:
        raise DimensionMismatchError(len(a), len(b))
    return v1, v2


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector has zero magnitude

    Raises:
        DimensionMismatchError: if the vectors differ in length
    """
    v1, v2 = _as_vectors(a, b)

    norm_a = float(np.linalg.norm(v1))
    norm_b = float(np.linalg.norm(v2))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = float(np.dot(v1, v2)) / (norm_a * norm_b)
    # Clamp rounding noise
    return max(-1.0, min(1.0, similarity))


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Euclidean distance between two vectors (lower is more similar)"""
    v1, v2 = _as_vectors(a, b)
    return float(np.linalg.norm(v1 - v2))


@dataclass
class BM25Params:
    """BM25 algorithm parameters."""

    k1: float = 1.2  # Term frequency saturation
    b: float = 0.75  # Length normalization


class BM25Scorer:
    """
    BM25 scorer over a fixed, ordered document collection.

    `add_documents` replaces the whole model; document indices in `score`
    and `top_k` refer to positions in the list it was given.
    Reference: Robertson & Zaragoza, 2009
    """

    def __init__(self, params: BM25Params = None):
        self.params = params or BM25Params()
        self._term_freqs: List[Counter] = []
        self._doc_lengths: List[int] = []
        self._avg_doc_length: float = 1.0
        self._idf: dict = {}

    @staticmethod
    def tokenize(text: str) -> List[str]:
        """Lowercase, drop punctuation, split on whitespace"""
        return [t for t in _NON_WORD_RE.sub(" ", text.lower()).split() if t]

    @property
    def document_count(self) -> int:
        return len(self._term_freqs)

    def add_documents(self, docs: List[str]) -> None:
        """Build the index from scratch for the given documents"""
        tokenized = [self.tokenize(d) for d in docs]

        self._term_freqs = [Counter(tokens) for tokens in tokenized]
        self._doc_lengths = [len(tokens) for tokens in tokenized]

        n = len(tokenized)
        total_length = sum(self._doc_lengths)
        self._avg_doc_length = (total_length / n if n else 0.0) or 1.0

        doc_freq: Counter = Counter()
        for tf in self._term_freqs:
            doc_freq.update(tf.keys())

        self._idf = {
            term: math.log((n - df + 0.5) / (df + 0.5) + 1)
            for term, df in doc_freq.items()
        }

    def idf(self, term: str) -> float:
        return self._idf.get(term, 0.0)

    def score(self, query: str) -> List[float]:
        """
        Score a query against all documents.

        Args:
            query: Query string

        Returns:
            One score per document, in document order
        """
        query_terms = self.tokenize(query)
        k1 = self.params.k1
        b = self.params.b

        scores = []
        for tf_map, doc_length in zip(self._term_freqs, self._doc_lengths):
            score = 0.0
            for term in query_terms:
                tf = tf_map.get(term, 0)
                idf = self._idf.get(term, 0.0)
                # Terms in at least half the corpus carry no signal
                if tf > 0 and idf > 0:
                    numerator = tf * (k1 + 1)
                    denominator = tf + k1 * (1 - b + b * (doc_length / self._avg_doc_length))
                    score += idf * (numerator / denominator)
            scores.append(score)

        return scores

    def top_k(self, query: str, k: int) -> List[Tuple[int, float]]:
        """
        Get the top-k documents with a positive score.

        Ties keep ascending document order (stable sort).

        Returns:
            List of (document_index, score) pairs, best first
        """
        ranked = [(i, s) for i, s in enumerate(self.score(query)) if s > 0]
        ranked.sort(key=lambda pair: pair[1], reverse=True)
        return ranked[:k]


def compute_affinity_score(
    semantic_similarity: float,
    time_diff_seconds: float,
    beta: float = 0.3,
    gamma: float = 86400.0,
) -> float:
    """
    Affinity between two units: cos(v_i, v_j) + beta * exp(-|t_i - t_j| / gamma)

    Args:
        semantic_similarity: Cosine similarity of the embeddings
        time_diff_seconds: Time difference in seconds
        beta: Temporal weight
        gamma: Temporal decay constant in seconds (default one day)
    """
    temporal = math.exp(-abs(time_diff_seconds) / gamma)
    return semantic_similarity + beta * temporal


def compute_dynamic_k(base_k: int, complexity: float, delta: float = 2.0) -> int:
    """
    Retrieval depth for a query: floor(k_base * (1 + delta * C_q))

    Args:
        base_k: Base retrieval count
        complexity: Query complexity score in [0, 1]
        delta: Expansion factor
    """
    return math.floor(base_k * (1 + delta * complexity))


def compute_hybrid_score(
    semantic_score: float,
    lexical_score: float,
    matches_constraints: bool,
    alpha: float = 0.6,
    beta: float = 0.3,
    gamma: float = 0.1,
) -> float:
    """
    S(q, m) = alpha * cos + beta * BM25_norm + gamma * [constraints hold]

    gamma is a bonus, the weights need not sum to 1.
    """
    symbolic_bonus = gamma if matches_constraints else 0.0
    return alpha * semantic_score + beta * lexical_score + symbolic_bonus
