"""Pydantic request/response/error schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from cdi_optimizer.models.clinical import GapStatus


# --- Request ---


class OptimizeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    er_text: str | None = Field(default=None, alias="erText")
    er_pdf_base64: str | None = Field(default=None, alias="erPdfBase64")
    hp_pdf_base64: str | None = Field(default=None, alias="hpPdfBase64")
    mcg_pdf_base64: str | None = Field(default=None, alias="mcgPdfBase64")


# --- Pipeline output ---


class MissingCriterion(BaseModel):
    mcg_clause: str
    status: GapStatus
    evidence_in_notes: str = "None"
    required_documentation: str = ""


class PipelineDebug(BaseModel):
    top_k_chunks: list[str]
    used_full_guideline: bool
    stages: list[str]
    self_audit_applied: bool


class ClinicalResult(BaseModel):
    revised_hpi: str
    missing_criteria: list[MissingCriterion]
    mapping_explanation: str
    debug: PipelineDebug | None = None


# --- Error schema ---


class ErrorResponse(BaseModel):
    error: str
