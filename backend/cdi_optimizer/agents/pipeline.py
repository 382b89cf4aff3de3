"""Staged generation pipeline: facts, narrative and gaps, explanation, self-audit."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from pydantic import ValidationError

from cdi_optimizer.agents import prompts
from cdi_optimizer.config import settings
from cdi_optimizer.errors import (
    GenerationError,
    PipelineError,
    StructuredParseError,
    UpstreamQuotaError,
)
from cdi_optimizer.models.clinical import VALID_GAP_STATUSES, ExtractedFacts
from cdi_optimizer.models.pipeline import PipelineContext
from cdi_optimizer.models.schemas import ClinicalResult, MissingCriterion, PipelineDebug
from cdi_optimizer.services.chunker import chunk_text
from cdi_optimizer.services.generation_client import GenerationClient
from cdi_optimizer.services.ranker import rank_chunks
from cdi_optimizer.services.sanitizer import (
    sanitize_gap_entry,
    sanitize_narrative,
    sanitize_text,
)
from cdi_optimizer.services.structured_output import extract_json_object

logger = logging.getLogger(__name__)

STATUS_ALIASES = {
    "NotDocumented": "Not documented",
    "InsufficientDetail": "Insufficient detail",
    "UnableToDetermine": "Unable to determine",
}


# --- Stage 3: facts ---


async def extract_facts(ctx: PipelineContext, client: GenerationClient) -> ExtractedFacts:
    """Extract structured facts. Any parse failure aborts the request."""
    raw = await client.complete(
        prompts.facts_messages(ctx.notes_text),
        temperature=settings.facts_temperature,
        stage="facts",
    )
    try:
        facts = ExtractedFacts.model_validate(
            extract_json_object(raw, code="FACTS_PARSE_ERROR")
        )
    except (StructuredParseError, ValidationError) as e:
        logger.error("Facts extraction returned unusable output: %s", e)
        raise StructuredParseError(
            code="FACTS_PARSE_ERROR",
            message="Failed to extract structured facts from the clinical notes.",
        )

    logger.info(
        "Facts: %d timeline events, %d symptoms, %d vitals, %d labs, %d imaging",
        len(facts.timeline),
        len(facts.symptoms),
        len(facts.vitals),
        len(facts.labs),
        len(facts.imaging),
    )
    return facts


# --- Stage 4: guideline retrieval ---


def retrieve_guideline(ctx: PipelineContext) -> None:
    ctx.chunks = chunk_text(
        ctx.guideline_text,
        min_len=settings.chunk_min_len,
        max_len=settings.chunk_max_len,
    )
    ctx.ranked = rank_chunks(ctx.notes_text, ctx.chunks, settings.top_k)
    ctx.excerpts = settings.excerpt_separator.join(r.text for r in ctx.ranked)

    ctx.used_full_guideline = len(ctx.guideline_text) < settings.full_guideline_threshold
    ctx.criteria_context = (
        ctx.guideline_text if ctx.used_full_guideline else ctx.excerpts
    )
    logger.info(
        "Guideline: %d chars -> %d chunks -> top %d excerpts (%d chars), "
        "criteria context=%s",
        len(ctx.guideline_text),
        len(ctx.chunks),
        len(ctx.ranked),
        len(ctx.excerpts),
        "full guideline" if ctx.used_full_guideline else "excerpts",
    )


# --- Stage 5: narrative and gap analysis (concurrent) ---


def _facts_json(ctx: PipelineContext) -> str:
    facts = ctx.facts or ExtractedFacts()
    return facts.model_dump_json(indent=2)


async def generate_narrative(ctx: PipelineContext, client: GenerationClient) -> str:
    narrative = await client.complete(
        prompts.narrative_messages(ctx.notes_text, _facts_json(ctx), ctx.excerpts),
        temperature=settings.narrative_temperature,
        stage="narrative",
    )
    if not sanitize_narrative(narrative):
        raise GenerationError(
            code="EMPTY_NARRATIVE", message="Model returned an empty revised HPI."
        )
    return narrative


async def request_gap_analysis(ctx: PipelineContext, client: GenerationClient) -> str:
    return await client.complete(
        prompts.gap_messages(ctx.notes_text, _facts_json(ctx), ctx.criteria_context),
        temperature=settings.gap_temperature,
        stage="gap_analysis",
    )


def _leaf_exceptions(group: BaseExceptionGroup) -> list[BaseException]:
    leaves: list[BaseException] = []
    for exc in group.exceptions:
        if isinstance(exc, BaseExceptionGroup):
            leaves.extend(_leaf_exceptions(exc))
        else:
            leaves.append(exc)
    return leaves


async def run_concurrent_generation(
    ctx: PipelineContext, client: GenerationClient
) -> tuple[str, str]:
    """Run narrative and gap analysis together; the first failure wins.

    The TaskGroup cancels the sibling call as soon as one leg fails. Quota
    failures take precedence over anything else that failed alongside them.
    """
    try:
        async with asyncio.TaskGroup() as tg:
            narrative_task = tg.create_task(generate_narrative(ctx, client))
            gap_task = tg.create_task(request_gap_analysis(ctx, client))
    except BaseExceptionGroup as eg:
        leaves = _leaf_exceptions(eg)
        for exc in leaves:
            if isinstance(exc, UpstreamQuotaError):
                raise exc from None
        for exc in leaves:
            if isinstance(exc, PipelineError):
                raise exc from None
        raise GenerationError(
            code="GENERATION_FAILED",
            message=str(leaves[0]) or "Narrative or gap analysis generation failed.",
        ) from leaves[0]

    return narrative_task.result(), gap_task.result()


# --- Stages 6-7: gap parsing with one retry, then validation ---


def _parse_gap_entries(raw: str) -> list[Any] | None:
    try:
        obj = extract_json_object(raw, code="GAP_PARSE_ERROR")
    except StructuredParseError:
        return None
    entries = obj.get("missing_criteria")
    return entries if isinstance(entries, list) else None


async def parse_gap_analysis(
    ctx: PipelineContext, client: GenerationClient, raw: str
) -> list[Any]:
    """Parse the gap list; retry once with a strict prompt, then degrade to []."""
    entries = _parse_gap_entries(raw)
    if entries is not None:
        return entries

    logger.warning("Gap analysis parse failed, retrying with strict prompt")
    ctx.stages.append("gap_retry")
    try:
        retry_raw = await client.complete(
            prompts.gap_retry_messages(ctx.notes_text, ctx.criteria_context),
            temperature=0.0,
            stage="gap_retry",
        )
    except UpstreamQuotaError:
        raise
    except PipelineError as e:
        logger.warning("Gap analysis retry call failed (%s), using empty list", e.code)
        return []

    entries = _parse_gap_entries(retry_raw)
    if entries is None:
        logger.warning("Gap analysis retry also unparseable, using empty list")
        logger.debug("Retry response: %r", retry_raw[:300])
        return []
    return entries


def validate_gaps(entries: list[Any]) -> list[MissingCriterion]:
    """Sanitize entries; keep those with a non-blank clause and a valid status."""
    valid: list[MissingCriterion] = []
    for item in entries:
        if not isinstance(item, dict):
            continue
        clause = item.get("mcg_clause") or item.get("criterion")
        if not isinstance(clause, str) or not clause.strip():
            continue
        status = item.get("status")
        if not isinstance(status, str):
            continue
        status = STATUS_ALIASES.get(status.strip(), status.strip())
        if status not in VALID_GAP_STATUSES:
            continue

        evidence = item.get("evidence_in_notes")
        if not isinstance(evidence, str):
            evidence = ""
        required = item.get("required_documentation") or item.get("what_to_document")
        if not isinstance(required, str):
            required = ""

        # Sanitized once here; a clause that was only markup is dropped.
        entry = sanitize_gap_entry(
            MissingCriterion(
                mcg_clause=clause,
                status=status,
                evidence_in_notes=evidence,
                required_documentation=required,
            )
        )
        if entry.mcg_clause:
            valid.append(entry)

    dropped = len(entries) - len(valid)
    if dropped:
        logger.info("Dropped %d invalid gap entries, kept %d", dropped, len(valid))
    return valid


def _gaps_json(gaps: list[MissingCriterion]) -> str:
    return json.dumps([g.model_dump() for g in gaps], indent=2)


# --- Stage 8: mapping explanation ---


async def generate_explanation(ctx: PipelineContext, client: GenerationClient) -> str:
    explanation = await client.complete(
        prompts.explanation_messages(
            ctx.notes_text, _gaps_json(ctx.gaps), ctx.criteria_context
        ),
        temperature=settings.explanation_temperature,
        stage="explanation",
    )
    if not sanitize_text(explanation):
        raise GenerationError(
            code="EMPTY_EXPLANATION",
            message="Model returned an empty mapping explanation.",
        )
    return explanation


# --- Stage 9: self-audit ---


async def self_audit(ctx: PipelineContext, client: GenerationClient) -> bool:
    """Replace outputs with audited versions. Returns False on any failure."""
    try:
        raw = await client.complete(
            prompts.audit_messages(
                ctx.notes_text, ctx.narrative, _gaps_json(ctx.gaps), ctx.explanation
            ),
            temperature=settings.audit_temperature,
            stage="self_audit",
        )
        audited = extract_json_object(raw, code="AUDIT_PARSE_ERROR")
    except PipelineError as e:
        logger.warning("Self-audit failed (%s), using pre-audit outputs", e.code)
        return False

    explanation = audited.get("mapping_explanation")
    if not isinstance(explanation, str) or not sanitize_text(explanation):
        logger.warning("Self-audit missing mapping_explanation, using pre-audit outputs")
        return False

    narrative = audited.get("revised_hpi")
    if isinstance(narrative, str) and sanitize_narrative(narrative):
        ctx.narrative = narrative
    audited_gaps = audited.get("missing_criteria")
    if isinstance(audited_gaps, list):
        ctx.gaps = validate_gaps(audited_gaps)
    ctx.explanation = explanation
    logger.info("Self-audit applied: %d gap entries after audit", len(ctx.gaps))
    return True


# --- Orchestration ---


def _build_result(ctx: PipelineContext) -> ClinicalResult:
    result = ClinicalResult(
        revised_hpi=sanitize_narrative(ctx.narrative),
        missing_criteria=list(ctx.gaps),
        mapping_explanation=sanitize_text(ctx.explanation),
    )
    if settings.debug:
        result.debug = PipelineDebug(
            top_k_chunks=[r.text for r in ctx.ranked],
            used_full_guideline=ctx.used_full_guideline,
            stages=list(ctx.stages),
            self_audit_applied=ctx.self_audit_applied,
        )
    return result


async def run_pipeline(ctx: PipelineContext, client: GenerationClient) -> ClinicalResult:
    """Run stages 3-10 over already extracted and bounded text."""
    ctx.stages.append("facts")
    ctx.facts = await extract_facts(ctx, client)

    ctx.stages.append("retrieval")
    retrieve_guideline(ctx)

    ctx.stages.extend(["narrative", "gap_analysis"])
    ctx.narrative, gap_raw = await run_concurrent_generation(ctx, client)

    entries = await parse_gap_analysis(ctx, client, gap_raw)
    ctx.gaps = validate_gaps(entries)

    ctx.stages.append("explanation")
    ctx.explanation = await generate_explanation(ctx, client)

    ctx.stages.append("self_audit")
    ctx.self_audit_applied = await self_audit(ctx, client)

    result = _build_result(ctx)
    logger.info(
        "Pipeline complete: hpi=%d chars, %d gaps, explanation=%d chars, audited=%s",
        len(result.revised_hpi),
        len(result.missing_criteria),
        len(result.mapping_explanation),
        ctx.self_audit_applied,
    )
    return result
