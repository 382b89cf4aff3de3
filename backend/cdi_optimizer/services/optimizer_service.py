"""Clinical documentation optimization service: validate, extract, bound, run."""

from __future__ import annotations

import asyncio
import logging

from cdi_optimizer.agents.pipeline import run_pipeline
from cdi_optimizer.config import settings
from cdi_optimizer.errors import InputValidationError
from cdi_optimizer.models.clinical import SourceDocument
from cdi_optimizer.models.pipeline import PipelineContext
from cdi_optimizer.models.schemas import ClinicalResult, OptimizeRequest
from cdi_optimizer.services.document_extractor import extract_text
from cdi_optimizer.services.generation_client import (
    GenerationClient,
    build_generation_client,
)

logger = logging.getLogger(__name__)


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def collect_documents(request: OptimizeRequest) -> list[SourceDocument]:
    """Validate the request and return the ER, H&P and guideline documents.

    Raises InputValidationError naming the first missing field.
    """
    if not _is_blank(request.er_text):
        er = SourceDocument(label="ER", field="erText", text=request.er_text)
    elif not _is_blank(request.er_pdf_base64):
        er = SourceDocument(label="ER", field="erPdfBase64", encoded=request.er_pdf_base64)
    else:
        raise InputValidationError(
            code="MISSING_INPUT",
            message="ER Notes are required (erText or erPdfBase64).",
        )

    if _is_blank(request.hp_pdf_base64):
        raise InputValidationError(
            code="MISSING_INPUT",
            message="Inpatient H&P PDF is required (hpPdfBase64).",
        )
    if _is_blank(request.mcg_pdf_base64):
        raise InputValidationError(
            code="MISSING_INPUT",
            message="MCG Guideline PDF is required (mcgPdfBase64).",
        )

    return [
        er,
        SourceDocument(label="H&P", field="hpPdfBase64", encoded=request.hp_pdf_base64),
        SourceDocument(
            label="Guideline", field="mcgPdfBase64", encoded=request.mcg_pdf_base64
        ),
    ]


def bound_text(text: str, limit: int, *, name: str) -> str:
    """Head-truncate ``text`` to ``limit`` characters."""
    if len(text) <= limit:
        return text
    logger.warning("%s truncated from %d to %d chars", name, len(text), limit)
    return text[:limit]


def combine_notes(er_text: str, hp_text: str) -> str:
    return f"ER NOTES:\n{er_text}\n\nINPATIENT H&P:\n{hp_text}"


async def optimize_documents(
    request: OptimizeRequest, client: GenerationClient | None = None
) -> ClinicalResult:
    """Run the full pipeline for one request.

    Validation and extraction finish before any generation call is made.
    """
    er_doc, hp_doc, guideline_doc = collect_documents(request)

    er_text = await asyncio.to_thread(extract_text, er_doc)
    hp_text = await asyncio.to_thread(extract_text, hp_doc)
    guideline_text = await asyncio.to_thread(extract_text, guideline_doc)

    ctx = PipelineContext(
        notes_text=bound_text(
            combine_notes(er_text, hp_text), settings.max_notes_chars, name="Notes"
        ),
        guideline_text=bound_text(
            guideline_text, settings.max_guideline_chars, name="Guideline"
        ),
    )
    logger.info(
        "=== Optimize request: notes=%d chars guideline=%d chars ===",
        len(ctx.notes_text),
        len(ctx.guideline_text),
    )

    if client is None:
        client = build_generation_client()
    return await run_pipeline(ctx, client)
