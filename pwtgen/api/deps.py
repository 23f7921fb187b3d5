from __future__ import annotations

from functools import lru_cache

from ..services.generation_service import GenerationSession


@lru_cache(maxsize=1)
def get_session() -> GenerationSession:
    """One process-wide session; tests replace it through ``app.dependency_overrides``."""
    return GenerationSession.create()
