"""Pydantic models for clinical source documents and extracted facts."""

from __future__ import annotations

from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict, field_validator

DocumentLabel = Literal["ER", "H&P", "Guideline"]

GapStatus = Literal["Not documented", "Insufficient detail", "Unable to determine"]
VALID_GAP_STATUSES: frozenset[str] = frozenset(get_args(GapStatus))


class SourceDocument(BaseModel):
    """One input document as received: either plain text or base64 payload."""

    label: DocumentLabel
    field: str
    text: str | None = None
    encoded: str | None = None


# --- Extracted facts (stage 1 output) ---
# Every field may be empty. None / [] means "not documented", never "negative".


class _FactsModel(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)


class PatientAttributes(_FactsModel):
    age: str | None = None
    sex: str | None = None
    relevant_history: list[str] = []

    @field_validator("relevant_history", mode="before")
    @classmethod
    def _none_as_empty(cls, value: object) -> object:
        return [] if value is None else value


class TimelineEvent(_FactsModel):
    time: str | None = None
    event: str | None = None


class Measurement(_FactsModel):
    name: str | None = None
    value: str | None = None
    time: str | None = None


class ExtractedFacts(_FactsModel):
    """Facts traceable to the source notes."""

    patient: PatientAttributes = PatientAttributes()
    timeline: list[TimelineEvent] = []
    symptoms: list[str] = []
    vitals: list[Measurement] = []
    labs: list[Measurement] = []
    imaging: list[str] = []
    treatments: list[str] = []
    disposition: str | None = None

    @field_validator("patient", mode="before")
    @classmethod
    def _none_as_default_patient(cls, value: object) -> object:
        return {} if value is None else value

    @field_validator(
        "timeline", "symptoms", "vitals", "labs", "imaging", "treatments", mode="before"
    )
    @classmethod
    def _none_as_empty(cls, value: object) -> object:
        return [] if value is None else value
