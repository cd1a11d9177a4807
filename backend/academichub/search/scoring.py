"""Relevance scoring for hybrid search.

Keyword relevance is a deliberately crude substring measure: no tokenizer and
no stemming. Semantic relevance is the cosine similarity between the query
embedding and the entity's stored embedding. Both land in [0, 1] and are fused
by ``ScoreFusion`` with configurable weights.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from academichub.config import Settings
from academichub.search.text import normalize_text

# Description matches count for less than title matches
DESCRIPTION_WEIGHT = 0.8


def keyword_score(text: str | None, query: str | None) -> float:
    """Score how well ``text`` matches ``query``, case-insensitively.

    +1.0 when the whole query occurs in the text, plus the fraction of
    distinct query words that occur in the text, capped at 1.0.
    """
    text_norm = normalize_text(text).lower()
    query_norm = normalize_text(query).lower()
    if not text_norm or not query_norm:
        return 0.0

    score = 0.0
    if query_norm in text_norm:
        score += 1.0

    words = set(query_norm.split())
    matched = sum(1 for word in words if word in text_norm)
    score += matched / len(words)

    return min(score, 1.0)


def entity_keyword_score(title: str | None, description: str | None, query: str) -> float:
    """Keyword score of an entity: the better of its title and description."""
    return max(
        keyword_score(title, query),
        DESCRIPTION_WEIGHT * keyword_score(description, query),
    )


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine similarity of two vectors.

    Returns 0.0 when the lengths differ or either vector has zero norm.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape or va.size == 0:
        return 0.0

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    return max(-1.0, min(1.0, similarity))


def semantic_score(
    query_embedding: Sequence[float] | None,
    entity_embedding: Sequence[float] | np.ndarray | None,
) -> float:
    """Semantic relevance in [0, 1]; entities without an embedding score 0."""
    if query_embedding is None or entity_embedding is None:
        return 0.0
    return max(0.0, cosine_similarity(query_embedding, entity_embedding))


@dataclass(frozen=True)
class SearchWeights:
    """Tunable ranking parameters."""

    semantic_weight: float = 0.6
    keyword_weight: float = 0.4
    relevance_floor: float = 0.1
    semantic_candidate_cap: int = 100
    keyword_candidate_cap: int = 50
    result_limit: int = 20

    @classmethod
    def from_settings(cls, settings: Settings) -> "SearchWeights":
        return cls(
            semantic_weight=settings.search_semantic_weight,
            keyword_weight=settings.search_keyword_weight,
            relevance_floor=settings.search_relevance_floor,
            semantic_candidate_cap=settings.search_semantic_candidate_cap,
            keyword_candidate_cap=settings.search_keyword_candidate_cap,
            result_limit=settings.search_result_limit,
        )

    def candidate_cap(self, query_embedding_present: bool) -> int:
        """Semantic mode skips storage-side text filtering, so it scans more rows."""
        if query_embedding_present:
            return self.semantic_candidate_cap
        return self.keyword_candidate_cap


class ScoreFusion:
    """Merge keyword and semantic scores into a single relevance score."""

    def __init__(self, weights: SearchWeights | None = None):
        self.weights = weights or SearchWeights()

    def fuse(
        self,
        keyword: float,
        semantic: float,
        query_embedding_present: bool,
        keyword_enabled: bool,
    ) -> float:
        """Combine the two signals according to the active search mode.

        - no query embedding: keyword only
        - query embedding, keyword disabled: semantic only
        - query embedding, keyword enabled: weighted hybrid
        """
        if not query_embedding_present:
            relevance = keyword
        elif not keyword_enabled:
            relevance = semantic
        else:
            relevance = (
                self.weights.semantic_weight * semantic
                + self.weights.keyword_weight * keyword
            )
        return max(0.0, min(1.0, relevance))

    def passes_floor(self, relevance: float) -> bool:
        return relevance > self.weights.relevance_floor
