"""Error taxonomy for the generation pipeline.

Every error carries the pipeline ``phase`` it came from and the underlying
``cause`` string so the CLI and API can report both.
"""

from __future__ import annotations

from typing import Optional


class PwtgenError(RuntimeError):
    phase = "pwtgen"

    def __init__(self, cause: str, phase: Optional[str] = None):
        self.cause = str(cause)
        if phase:
            self.phase = phase
        super().__init__(f"{self.phase} failed: {self.cause}")


class ConfigurationError(PwtgenError):
    """Required credentials or URLs are missing. Fatal."""

    phase = "configuration"


class EmbeddingError(PwtgenError):
    phase = "embedding"


class RetrievalFailure(PwtgenError):
    """Embedding or index query failed. Absorbed as an empty result set."""

    phase = "retrieval"


class IngestionPartialFailure(PwtgenError):
    """One document could not be embedded. Recorded, ingestion continues."""

    phase = "ingestion"

    def __init__(self, doc_id: str, cause: str):
        self.doc_id = doc_id
        super().__init__(f"{doc_id}: {cause}")


class GenerationFailure(PwtgenError):
    """The code-generation collaborator returned nothing. Fatal."""

    phase = "generation"


class RecorderError(PwtgenError):
    phase = "recorder"


class InterventionStepFailure(PwtgenError):
    """Recorder failed during an edit. The step is left unchanged."""

    phase = "intervention"

    def __init__(self, step_index: int, cause: str):
        self.step_index = step_index
        super().__init__(f"step {step_index + 1}: {cause}")


class PersistenceError(PwtgenError):
    """The final write failed. Fatal."""

    phase = "persistence"
