"""Request-scoped state threaded through the generation pipeline."""

from __future__ import annotations

from pydantic import BaseModel

from cdi_optimizer.models.clinical import ExtractedFacts
from cdi_optimizer.models.retrieval import RankedChunk
from cdi_optimizer.models.schemas import MissingCriterion


class PipelineContext(BaseModel):
    """Owns every intermediate of one request; discarded when it completes."""

    notes_text: str
    guideline_text: str

    chunks: list[str] = []
    ranked: list[RankedChunk] = []
    excerpts: str = ""
    criteria_context: str = ""
    used_full_guideline: bool = False

    facts: ExtractedFacts | None = None
    narrative: str = ""
    gaps: list[MissingCriterion] = []
    explanation: str = ""
    self_audit_applied: bool = False

    stages: list[str] = []
