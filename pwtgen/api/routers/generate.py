from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ...core.errors import ConfigurationError, GenerationFailure, PersistenceError
from ...core.models import Credentials, GenerationRequest, Ticket
from ...services.generation_service import GenerationSession, generate_test
from ..deps import get_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["generate"])


class TicketPayload(BaseModel):
    key: str
    summary: str
    description: str = ""
    acceptanceCriteria: List[str] = Field(default_factory=list)
    assignee: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None


class CredentialsPayload(BaseModel):
    email: str
    password: str


class GenerateRequest(BaseModel):
    ticket: TicketPayload
    environment: str = Field("test", description="One of test, qa, staging, prod, local.")
    outputPath: str = Field(..., description="Where the generated test file is written.")
    pageObjects: bool = False
    overwrite: bool = False
    dryRun: bool = False
    credentials: Optional[CredentialsPayload] = None

    def to_request(self) -> GenerationRequest:
        t = self.ticket
        return GenerationRequest(
            ticket=Ticket(
                key=t.key,
                summary=t.summary,
                description=t.description,
                acceptance_criteria=list(t.acceptanceCriteria),
                assignee=t.assignee,
                status=t.status,
                priority=t.priority,
            ),
            environment=self.environment,
            output_path=self.outputPath,
            page_object_pattern=self.pageObjects,
            overwrite=self.overwrite,
            dry_run=self.dryRun,
            credentials=Credentials(self.credentials.email, self.credentials.password) if self.credentials else None,
        )


class GenerateResponse(BaseModel):
    filePath: str
    testName: str
    ticket: Dict[str, Any]
    environment: str
    generatedAt: str
    ragContexts: List[Dict[str, Any]]
    confidence: float
    content: str


@router.post("/generate", response_model=GenerateResponse)
def generate(req: GenerateRequest, session: GenerationSession = Depends(get_session)) -> GenerateResponse:
    try:
        result = generate_test(session, req.to_request())
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except GenerationFailure as exc:
        logger.warning("[API] %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except PersistenceError as exc:
        logger.error("[API] %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return GenerateResponse(**result.to_dict())
