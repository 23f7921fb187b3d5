from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ...core.models import RetrievalContext
from ...retrieval.engine import ThresholdCascadeStrategy
from ...services.generation_service import GenerationSession, ingest_knowledge_base
from ..deps import get_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vector", tags=["vector"])


class VectorQueryRequest(BaseModel):
    query: str
    topK: int = Field(15, ge=1, description="Nearest neighbours to fetch before filtering.")
    minScore: Optional[float] = Field(None, description="Override the configured minimum score.")


class VectorSearchRequest(BaseModel):
    query: str
    topN: int = Field(5, ge=1)


class ContextRecord(BaseModel):
    id: str
    content: str
    type: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_context(cls, ctx: RetrievalContext) -> "ContextRecord":
        return cls(**ctx.to_dict())


class VectorQueryResponse(BaseModel):
    results: List[ContextRecord]


class IngestResponse(BaseModel):
    indexed: int
    seeded: bool
    warnings: List[str]


@router.post("/query", response_model=VectorQueryResponse)
async def query(req: VectorQueryRequest, session: GenerationSession = Depends(get_session)) -> VectorQueryResponse:
    strategy = ThresholdCascadeStrategy(session.index, session.embedder, session.settings)
    contexts = strategy.query(req.query, top_k=req.topK, min_score=req.minScore)
    return VectorQueryResponse(results=[ContextRecord.from_context(c) for c in contexts])


@router.post("/search", response_model=VectorQueryResponse)
async def search(req: VectorSearchRequest, session: GenerationSession = Depends(get_session)) -> VectorQueryResponse:
    try:
        engine = session.keyword_engine()
    except (OSError, ValueError) as exc:
        raise HTTPException(status_code=500, detail=f"Article embeddings unavailable: {exc}") from exc
    contexts = engine.retrieve(req.query, req.topN)
    return VectorQueryResponse(results=[ContextRecord.from_context(c) for c in contexts])


@router.post("/ingest", response_model=IngestResponse)
async def ingest(session: GenerationSession = Depends(get_session)) -> IngestResponse:
    try:
        report = ingest_knowledge_base(session)
    except Exception as exc:
        logger.exception("[API] Knowledge base ingest failed")
        raise HTTPException(status_code=500, detail=f"Ingest failed: {exc}") from exc
    return IngestResponse(indexed=report.indexed, seeded=report.seeded, warnings=report.warnings)
