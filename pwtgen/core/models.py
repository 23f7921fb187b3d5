from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .config import ENVIRONMENTS
from .errors import ConfigurationError, IngestionPartialFailure


class DocumentType(str, Enum):
    SELECTOR = "selector"
    WORKFLOW = "workflow"
    PATTERN = "pattern"
    FIXTURE = "fixture"


@dataclass(frozen=True)
class Document:
    """One knowledge-base file. Identity is the source path."""

    id: str
    text: str
    type: DocumentType
    meta: Dict[str, str] = field(default_factory=dict)


@dataclass
class RetrievalContext:
    id: str
    content: str
    type: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def boosted(self) -> bool:
        return bool(self.metadata.get("boosted"))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Ticket:
    key: str
    summary: str
    description: str = ""
    acceptance_criteria: List[str] = field(default_factory=list)
    assignee: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None

    def query_text(self) -> str:
        parts = [self.summary, self.description, *self.acceptance_criteria]
        return " ".join(part for part in parts if part)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Credentials:
    email: str
    password: str


@dataclass(frozen=True)
class GenerationRequest:
    ticket: Ticket
    environment: str
    output_path: str
    page_object_pattern: bool = False
    overwrite: bool = False
    dry_run: bool = False
    credentials: Optional[Credentials] = None

    def validate(self) -> "GenerationRequest":
        problems: List[str] = []
        if not (self.ticket.key or "").strip():
            problems.append("ticket key is empty")
        if not (self.ticket.summary or "").strip():
            problems.append("ticket summary is empty")
        if self.environment not in ENVIRONMENTS:
            problems.append(f"unknown environment '{self.environment}' (expected one of {', '.join(ENVIRONMENTS)})")
        if not (self.output_path or "").strip():
            problems.append("output path is empty")
        if problems:
            raise ConfigurationError("Invalid generation request: " + "; ".join(problems))
        return self


@dataclass
class Step:
    index: int
    description: str
    code: str
    developer_modified: bool = False
    skipped: bool = False


@dataclass
class GeneratedTest:
    file_path: str
    test_name: str
    ticket: Ticket
    environment: str
    generated_at: str
    rag_contexts: List[RetrievalContext]
    confidence: float
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filePath": self.file_path,
            "testName": self.test_name,
            "ticket": self.ticket.to_dict(),
            "environment": self.environment,
            "generatedAt": self.generated_at,
            "ragContexts": [ctx.to_dict() for ctx in self.rag_contexts],
            "confidence": self.confidence,
            "content": self.content,
        }


@dataclass
class IngestReport:
    indexed: int
    failures: List[IngestionPartialFailure] = field(default_factory=list)
    seeded: bool = False

    @property
    def warnings(self) -> List[str]:
        return [str(failure) for failure in self.failures]
