"""Full knowledge-base ingest: load, seed once when empty, rebuild the index."""

from __future__ import annotations

import logging
from pathlib import Path

from ..core.models import IngestReport
from ..core.vector_db import VectorDBClient
from .loader import load_documents
from .seed import seed_knowledge_base

logger = logging.getLogger(__name__)


def ingest_knowledge_base(root: Path, index: VectorDBClient) -> IngestReport:
    root = Path(root)
    logger.info("[Ingest] Indexing knowledge base at %s", root)
    docs = load_documents(root)
    seeded = False
    if not docs:
        logger.warning("[Ingest] No documents found in knowledge base. Creating sample files")
        seed_knowledge_base(root)
        seeded = True
        docs = load_documents(root)

    report = index.rebuild(docs)
    report.seeded = seeded
    for warning in report.warnings:
        logger.warning("[Ingest] %s", warning)
    logger.info("[Ingest] %d of %d documents indexed", report.indexed, len(docs))
    return report
