"""Shared test data and builders: sample documents, PDFs, scripted clients."""

from __future__ import annotations

import base64
import json
from io import BytesIO
from unittest.mock import AsyncMock

from pypdf import PdfWriter

ER_NOTE = (
    "58 year old male presented to the ER with fever of 39.2 C and confusion "
    "for two days. Heart rate 118, blood pressure 84/50. Lactate 4.1. "
    "Blood cultures drawn and broad spectrum antibiotics started."
)

HP_LINES = [
    "Inpatient History and Physical",
    "Admitted for sepsis with hypotension.",
    "Received 2 liters normal saline in the ER.",
]

GUIDELINE_TEXT = (
    "Sepsis inpatient admission criteria.\n\n"
    "Hypotension with systolic blood pressure below 90 despite fluid "
    "resuscitation supports admission.\n\n"
    "Serum lactate above 4 mmol/L indicates tissue hypoperfusion.\n\n"
    "Altered mental status documented by the treating physician."
)

FACTS_JSON = json.dumps(
    {
        "patient": {"age": "58", "sex": "male", "relevant_history": []},
        "timeline": [{"time": "two days", "event": "fever and confusion"}],
        "symptoms": ["fever", "confusion"],
        "vitals": [{"name": "heart rate", "value": 118, "time": None}],
        "labs": [{"name": "lactate", "value": "4.1", "time": None}],
        "imaging": [],
        "treatments": ["broad spectrum antibiotics"],
        "disposition": None,
    }
)

SPARSE_FACTS_JSON = json.dumps(
    {"patient": {"age": None, "sex": None}, "symptoms": ["fever"], "labs": None}
)

GAPS_JSON = json.dumps(
    {
        "missing_criteria": [
            {
                "mcg_clause": "Hypotension despite fluid resuscitation",
                "status": "Insufficient detail",
                "evidence_in_notes": "blood pressure 84/50",
                "required_documentation": "Document fluid volume given and response.",
            }
        ]
    }
)

NARRATIVE = (
    "58-year-old male presenting with two days of fever and confusion, "
    "tachycardic and hypotensive with lactate of 4.1."
)

EXPLANATION = (
    "Hypotension is documented as 84/50 but fluid resuscitation is not "
    "described, so the clause is insufficiently supported."
)


def build_text_pdf(lines: list[str]) -> bytes:
    """Build a one-page PDF with Helvetica text lines."""

    def _escape(s: str) -> str:
        return s.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")

    ops = ["BT", "/F1 11 Tf", "14 TL", "50 750 Td"]
    ops += [f"({_escape(line)}) Tj T*" for line in lines]
    ops.append("ET")
    stream = "\n".join(ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
        b"/Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"
    xref_offset = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\n" % (len(objects) + 1)
    out += b"startxref\n%d\n%%%%EOF\n" % xref_offset
    return bytes(out)


def build_blank_pdf(*, password: str | None = None) -> bytes:
    """A single blank page, i.e. a PDF with no extractable text."""
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    if password is not None:
        writer.encrypt(user_password=password, owner_password=password)
    buf = BytesIO()
    writer.write(buf)
    return buf.getvalue()


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def make_scripted_client(responses: dict[str, object]) -> AsyncMock:
    """AsyncMock generation client answering per stage.

    A value may be a string, an exception instance, or a list of those
    consumed one per call.
    """
    remaining = {
        stage: list(value) if isinstance(value, list) else value
        for stage, value in responses.items()
    }

    async def _complete(messages, *, temperature, stage):
        if stage not in remaining:
            raise AssertionError(f"Unexpected generation call for stage {stage!r}")
        value = remaining[stage]
        if isinstance(value, list):
            value = value.pop(0)
        if isinstance(value, BaseException):
            raise value
        return value

    mock = AsyncMock()
    mock.complete.side_effect = _complete
    return mock


def called_stages(mock: AsyncMock) -> list[str]:
    return [call.kwargs["stage"] for call in mock.complete.call_args_list]


def happy_responses() -> dict[str, object]:
    """Responses for every stage; the self-audit answers with prose."""
    return {
        "facts": FACTS_JSON,
        "narrative": NARRATIVE,
        "gap_analysis": GAPS_JSON,
        "explanation": EXPLANATION,
        "self_audit": "I could not audit this.",
    }
