"""Retrieval over the knowledge base.

Two ranking strategies share one contract (``retrieve(query, limit)``):

* :class:`ThresholdCascadeStrategy` queries the vector index and filters by a
  minimum score, falling back to a lower floor and then to the unfiltered
  neighbours so a non-empty index always yields context.
* :class:`KeywordBoostStrategy` scores a flat article list by cosine
  similarity plus additive keyword boosts. Its scores are ranks, not
  probabilities, and every context it returns is marked ``boosted``.

Both swallow embedding and index errors: a failed query is logged and returns
an empty list.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Protocol

import numpy as np

from ..core.config import Settings
from ..core.embeddings import EmbeddingProvider
from ..core.errors import RetrievalFailure
from ..core.models import RetrievalContext
from ..core.vector_db import VectorDBClient
from ..ingestion.articles import ArticleEmbeddingStore

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3

# Text that reads like runnable Playwright test code
EXECUTABLE_TEST_PATTERN = re.compile(r"await\s+page\.|\btest(?:\.step)?\s*\(|\bexpect\s*\(", re.IGNORECASE)


def _mentions(text: str, keyword: str) -> bool:
    """Whole-word, case-insensitive match; "test" does not hit "latest"."""
    return re.search(rf"\b{re.escape(keyword)}\b", text, re.IGNORECASE) is not None


class RankingStrategy(Protocol):
    def retrieve(self, query: str, limit: Optional[int] = None) -> List[RetrievalContext]:
        ...


def cosine_similarity(a, b) -> float:
    a_arr = np.asarray(a, dtype=np.float32)
    b_arr = np.asarray(b, dtype=np.float32)
    if a_arr.shape != b_arr.shape:
        return 0.0
    norm = float(np.linalg.norm(a_arr) * np.linalg.norm(b_arr))
    if norm == 0.0:
        return 0.0
    return float(np.dot(a_arr, b_arr) / norm)


class ThresholdCascadeStrategy:
    def __init__(self, index: VectorDBClient, embedder: Optional[EmbeddingProvider] = None, settings: Optional[Settings] = None):
        self.index = index
        self.embedder = embedder or index.embedder
        self.settings = settings or Settings()

    def query(self, text: str, top_k: Optional[int] = None, min_score: Optional[float] = None) -> List[RetrievalContext]:
        top_k = top_k if top_k is not None else self.settings.top_k
        min_score = min_score if min_score is not None else self.settings.min_score
        if not text or len(text.strip()) < MIN_QUERY_LENGTH:
            logger.warning("[Retrieval] Query text is empty or too short")
            return []

        try:
            vector = self.embedder.embed(text)
            hits = self.index.query(vector, top_k=top_k)
        except Exception as exc:  # noqa: BLE001
            failure = RetrievalFailure(str(exc))
            logger.warning("[Retrieval] %s", failure)
            return []

        if not hits:
            logger.warning("[Retrieval] No results found in knowledge base for query: %s", text)
            return []

        filtered = [hit for hit in hits if hit.score >= min_score]
        if not filtered:
            floor = self.settings.fallback_min_score
            logger.info("[Retrieval] No results above min_score=%s. Lowering threshold to %s", min_score, floor)
            filtered = [hit for hit in hits if hit.score >= floor]
        if not filtered:
            logger.info("[Retrieval] Still no results above threshold. Returning top %d regardless of score", len(hits))
            filtered = list(hits)

        # hits arrive in insertion order for equal scores; sorted() is stable
        filtered = sorted(filtered, key=lambda hit: -hit.score)
        logger.info("[Retrieval] Returning %d results for query: %s", len(filtered), text)
        return [
            RetrievalContext(
                id=hit.id,
                content=hit.content,
                type=str(hit.metadata.get("type") or "unknown"),
                score=hit.score,
                metadata=dict(hit.metadata),
            )
            for hit in filtered
        ]

    def retrieve(self, query: str, limit: Optional[int] = None) -> List[RetrievalContext]:
        return self.query(query, top_k=limit)


class KeywordBoostStrategy:
    def __init__(self, store: ArticleEmbeddingStore, embedder: EmbeddingProvider, settings: Optional[Settings] = None):
        self.store = store
        self.embedder = embedder
        self.settings = settings or Settings()

    def boost_for(self, text: str) -> float:
        boost = sum(self.settings.keyword_boost for kw in self.settings.boost_keywords if _mentions(text, kw))
        if EXECUTABLE_TEST_PATTERN.search(text):
            boost += self.settings.test_pattern_boost
        return boost

    def semantic_search(self, query: str, top_n: int = 5) -> List[RetrievalContext]:
        if not len(self.store):
            return []
        try:
            query_vec = self.embedder.embed(query)
        except Exception as exc:  # noqa: BLE001
            logger.warning("[Retrieval] %s", RetrievalFailure(str(exc)))
            return []

        scored = []
        for position, article in enumerate(self.store):
            if not article.embedding:
                continue
            similarity = cosine_similarity(query_vec, article.embedding)
            score = similarity + self.boost_for(article.raw_text)
            scored.append((score, position, similarity, article))

        scored.sort(key=lambda item: (-item[0], item[1]))
        return [
            RetrievalContext(
                id=article.url or article.title,
                content=article.content,
                type="article",
                score=score,
                metadata={
                    "title": article.title,
                    "url": article.url,
                    "tags": list(article.tags),
                    "similarity": similarity,
                    "boosted": True,
                },
            )
            for score, _, similarity, article in scored[:top_n]
        ]

    def retrieve(self, query: str, limit: Optional[int] = None) -> List[RetrievalContext]:
        return self.semantic_search(query, top_n=limit if limit is not None else 5)


class RetrievalEngine:
    def __init__(self, strategy: RankingStrategy):
        self.strategy = strategy

    def retrieve(self, query: str, limit: Optional[int] = None) -> List[RetrievalContext]:
        return self.strategy.retrieve(query, limit)
