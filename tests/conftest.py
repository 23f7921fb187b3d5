"""Shared fakes for the generator test suite."""

from pathlib import Path
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest

from pwtgen.core.config import Settings
from pwtgen.core.errors import EmbeddingError, RecorderError
from pwtgen.core.llm_client import LLMClient
from pwtgen.core.models import IngestReport
from pwtgen.core.vector_db import IndexHit
from pwtgen.intervention.workflow import StepAction, StepDecision
from pwtgen.retrieval.engine import RetrievalEngine, ThresholdCascadeStrategy
from pwtgen.services.generation_service import GenerationSession

VOCAB = ("login", "password", "order", "checkout", "selector", "workflow", "button", "email")


def bag_of_words(texts: List[str]) -> List[List[float]]:
    """Deterministic embedding: keyword counts plus a constant component."""
    return [[float(t.lower().count(w)) for w in VOCAB] + [1.0] for t in texts]


class FakeEmbedder:
    def __init__(self, vector=None):
        self.vector = vector or [1.0, 0.0]
        self.calls = []

    def embed(self, text):
        self.calls.append(text)
        return list(self.vector)


class FailingEmbedder:
    def embed(self, text):
        raise EmbeddingError("model unavailable")


class FakeIndex:
    def __init__(self, scores: List[float]):
        self.hits = [
            IndexHit(id=f"doc-{i}", content=f"content {i}", score=s, metadata={"type": "workflow", "seq": i})
            for i, s in enumerate(scores)
        ]
        self.embedder = FakeEmbedder()

    def query(self, vector, top_k=15):
        return list(self.hits)[:top_k]


class FakeLLM:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts: List[str] = []

    def invoke(self, prompt):
        self.prompts.append(prompt)
        value = self.responses.pop(0) if self.responses else ""
        if isinstance(value, Exception):
            raise value
        return SimpleNamespace(content=value)


class FakeRecorder:
    """Returns canned codegen output (or raises) and writes it where asked."""

    def __init__(self, *outputs):
        self.outputs = list(outputs)
        self.calls = []

    def record(self, url, output_path):
        self.calls.append((url, str(output_path)))
        value = self.outputs.pop(0) if self.outputs else RecorderError("no recording available")
        if isinstance(value, Exception):
            raise value
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(value, encoding="utf-8")
        return value


class ScriptedDecisions:
    def __init__(
        self,
        reviews: Optional[Dict[int, StepDecision]] = None,
        replace_index: Optional[int] = None,
        confirms: Optional[List[bool]] = None,
    ):
        self.reviews = reviews or {}
        self.replace_index = replace_index
        self.confirms = list(confirms or [])
        self.events = []
        self.messages = []
        self.resumed = []

    def review(self, event):
        self.events.append(event)
        return self.reviews.get(event.step.index, StepDecision(StepAction.ACCEPT))

    def choose_step_to_replace(self, steps, captured):
        return self.replace_index

    def wait_for_resume(self, step):
        self.resumed.append(step.index)

    def confirm(self, message, default=False):
        self.messages.append(message)
        return self.confirms.pop(0) if self.confirms else default


def recorded_script(body: str) -> str:
    """Wrap statements the way `playwright codegen --target playwright-test` does."""
    indented = "\n".join(f"  {line}" for line in body.splitlines())
    return (
        "import { test, expect } from '@playwright/test';\n\n"
        "test('test', async ({ page }) => {\n"
        f"{indented}\n"
        "});\n"
    )


@pytest.fixture
def settings(tmp_path):
    return Settings(
        knowledge_base_dir=tmp_path / "knowledge-base",
        vector_db_path=str(tmp_path / "vector_store"),
        article_embeddings_path=tmp_path / "article_embeddings.json",
        environment_urls={"qa": "https://qa.example.com", "test": "https://test.example.com"},
    )


class RebuildingIndex(FakeIndex):
    """FakeIndex that also accepts a full rebuild."""

    def __init__(self, scores=()):
        super().__init__(list(scores))
        self.documents = []

    def rebuild(self, documents):
        self.documents = list(documents)
        return IngestReport(indexed=len(self.documents))


def make_session(settings, *responses, recorder=None, scores=(0.9,)):
    index = RebuildingIndex(scores)
    embedder = FakeEmbedder()
    return GenerationSession(
        settings=settings,
        embedder=embedder,
        index=index,
        retrieval=RetrievalEngine(ThresholdCascadeStrategy(index, embedder, settings)),
        llm=LLMClient(settings, llm=FakeLLM(*responses)),
        recorder=recorder or FakeRecorder(),
    )
