"""Embedding provider wrapping a chromadb embedding function."""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Sequence

from chromadb.utils import embedding_functions

from .errors import EmbeddingError

logger = logging.getLogger(__name__)

EmbeddingFunction = Callable[[List[str]], Sequence[Any]]


def _to_floats(vector: Any) -> List[float]:
    if hasattr(vector, "tolist"):
        vector = vector.tolist()
    if vector and isinstance(vector[0], (list, tuple)):
        vector = vector[0]
    return [float(v) for v in vector]


class EmbeddingProvider:
    """Pure ``text -> vector`` function around a lazily loaded model.

    The default function is chromadb's ONNX all-MiniLM-L6-v2 model, the same
    one the vector store would otherwise apply on its own.
    """

    def __init__(self, embedding_function: Optional[EmbeddingFunction] = None):
        self._fn = embedding_function

    def _ensure_model(self) -> EmbeddingFunction:
        if self._fn is None:
            logger.info("[Embeddings] Loading default embedding model")
            self._fn = embedding_functions.DefaultEmbeddingFunction()
        return self._fn

    def embed(self, text: str) -> List[float]:
        vectors = self.embed_many([text])
        return vectors[0]

    def embed_many(self, texts: List[str]) -> List[List[float]]:
        fn = self._ensure_model()
        try:
            raw = fn(list(texts))
        except Exception as exc:  # noqa: BLE001
            raise EmbeddingError(f"embedding call failed: {exc}") from exc
        vectors = [_to_floats(item) for item in (raw if raw is not None else [])]
        if len(vectors) != len(texts) or any(not vec for vec in vectors):
            raise EmbeddingError(f"expected {len(texts)} vectors, got {len(vectors)}")
        return vectors
