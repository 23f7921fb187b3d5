"""Service functions wiring ingestion, retrieval, generation and review together.

All shared state lives on an explicit :class:`GenerationSession` that callers
build once and pass to every function.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.config import Settings
from ..core.embeddings import EmbeddingProvider
from ..core.llm_client import LLMClient
from ..core.models import GeneratedTest, GenerationRequest, IngestReport
from ..core.vector_db import VectorDBClient
from ..generators.confidence import score_confidence
from ..generators.test_generator import TestGenerator, extract_test_name, write_test_file
from ..ingestion.articles import ArticleEmbeddingStore, embed_articles, load_articles
from ..ingestion.ingest_kb import ingest_knowledge_base as _ingest
from ..intervention import knowledge_log
from ..intervention.workflow import DecisionProvider, InterventionResult, InterventionWorkflow
from ..recorder.codegen_recorder import CodegenRecorder
from ..retrieval.engine import KeywordBoostStrategy, RetrievalEngine, ThresholdCascadeStrategy

logger = logging.getLogger(__name__)


@dataclass
class GenerationSession:
    settings: Settings
    embedder: EmbeddingProvider
    index: VectorDBClient
    retrieval: RetrievalEngine
    llm: LLMClient
    recorder: CodegenRecorder

    @classmethod
    def create(
        cls,
        settings: Optional[Settings] = None,
        embedder: Optional[EmbeddingProvider] = None,
        index: Optional[VectorDBClient] = None,
        llm: Optional[LLMClient] = None,
        recorder: Optional[CodegenRecorder] = None,
    ) -> "GenerationSession":
        settings = settings or Settings.from_env()
        embedder = embedder or EmbeddingProvider()
        index = index or VectorDBClient(settings.vector_db_path, settings.collection_name, embedder=embedder)
        return cls(
            settings=settings,
            embedder=embedder,
            index=index,
            retrieval=RetrievalEngine(ThresholdCascadeStrategy(index, embedder, settings)),
            llm=llm or LLMClient(settings),
            recorder=recorder or CodegenRecorder(timeout=settings.recorder_timeout),
        )

    def generator(self) -> TestGenerator:
        return TestGenerator(self.settings, self.retrieval, self.llm)

    def keyword_engine(self, store: Optional[ArticleEmbeddingStore] = None) -> RetrievalEngine:
        store = store if store is not None else ArticleEmbeddingStore.load(self.settings.article_embeddings_path)
        return RetrievalEngine(KeywordBoostStrategy(store, self.embedder, self.settings))


@dataclass
class InteractiveGenerationResult:
    generated: GeneratedTest
    intervention: InterventionResult
    knowledge_updates: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload = self.generated.to_dict()
        payload["steps"] = [
            {
                "index": s.index,
                "description": s.description,
                "developerModified": s.developer_modified,
                "skipped": s.skipped,
            }
            for s in self.intervention.steps
        ]
        payload["warnings"] = [str(f) for f in self.intervention.failures]
        payload["knowledgeUpdates"] = self.knowledge_updates
        return payload


def ingest_knowledge_base(session: GenerationSession) -> IngestReport:
    return _ingest(session.settings.knowledge_base_dir, session.index)


def generate_test(session: GenerationSession, request: GenerationRequest) -> GeneratedTest:
    return session.generator().generate(request)


def _record_knowledge(
    session: GenerationSession,
    request: GenerationRequest,
    result: InterventionResult,
    output_path: str,
    confidence: float,
    decisions: DecisionProvider,
) -> List[str]:
    kb = session.settings.knowledge_base_dir
    ticket = request.ticket
    written: List[Path] = []
    captured = "\n".join([i.code for i in result.interventions] + [result.manual_code or ""]).strip()

    try:
        if result.interventions and decisions.confirm("Append the intervention to the card-test mapping log?"):
            for item in result.interventions:
                written.append(knowledge_log.append_intervention_record(kb, ticket, output_path, item.step_index, item.code))
        if captured and knowledge_log.extract_selectors(captured) and decisions.confirm(
            "Save selectors discovered during this session to the knowledge base?"
        ):
            written.append(knowledge_log.append_discovered_selectors(kb, ticket, captured))
        if captured and knowledge_log.extract_test_data(captured) and decisions.confirm(
            "Save test data entered during this session to the knowledge base?"
        ):
            written.append(knowledge_log.append_discovered_test_data(kb, ticket, captured))
        if decisions.confirm("Record how this card was validated?"):
            written.append(knowledge_log.append_card_validation(
                kb,
                ticket,
                output_path,
                accepted=result.accepted,
                edited=sum(1 for s in result.steps if s.developer_modified),
                skipped=sum(1 for s in result.steps if s.skipped),
                confidence=confidence,
            ))
    except OSError as exc:
        logger.warning("[Service] Could not update knowledge base logs: %s", exc)
    return [str(p) for p in written if p]


def generate_interactive(
    session: GenerationSession,
    request: GenerationRequest,
    decisions: DecisionProvider,
) -> InteractiveGenerationResult:
    request.validate()
    session.llm.ensure_ready()
    generator = session.generator()
    contexts = generator.retrieve_context(request)
    code = generator.generate_code(request, contexts)

    workflow = InterventionWorkflow(request, session.recorder, decisions, session.settings)
    result = workflow.run(code, login_code=generator.login_steps(request))

    merged = result.merged_code
    if session.settings.optimize_generated_code:
        merged = generator.optimize(merged)
    confidence = score_confidence(contexts, merged)

    final_path = request.output_path
    if not request.dry_run:
        final_path = str(write_test_file(request.output_path, merged, request.overwrite))

    generated = GeneratedTest(
        file_path=final_path,
        test_name=extract_test_name(request.ticket.summary),
        ticket=request.ticket,
        environment=request.environment,
        generated_at=datetime.now(timezone.utc).isoformat(),
        rag_contexts=contexts,
        confidence=confidence,
        content=merged,
    )
    updates = _record_knowledge(session, request, result, final_path, confidence, decisions)
    logger.info(
        "[Service] Interactive generation finished: %d steps, %d interventions, %d%% confidence",
        len(result.steps), len(result.interventions), round(confidence * 100),
    )
    return InteractiveGenerationResult(generated=generated, intervention=result, knowledge_updates=updates)


def build_article_index(
    session: GenerationSession,
    articles_path: Path,
    out_path: Optional[Path] = None,
) -> ArticleEmbeddingStore:
    articles = load_articles(articles_path)
    store = embed_articles(articles, session.embedder)
    store.save(out_path or session.settings.article_embeddings_path)
    logger.info("[Service] Embedded %d of %d articles", len(store), len(articles))
    return store
