"""Plain-text extraction from base64-encoded PDF payloads."""

from __future__ import annotations

import base64
import binascii
import logging
from io import BytesIO

from pypdf import PasswordType, PdfReader

from cdi_optimizer.errors import ExtractionError, InputValidationError
from cdi_optimizer.models.clinical import DocumentLabel, SourceDocument

logger = logging.getLogger(__name__)

DISPLAY_NAMES: dict[DocumentLabel, str] = {
    "ER": "ER Notes",
    "H&P": "Inpatient H&P",
    "Guideline": "MCG Guideline",
}


def decode_payload(encoded: str, *, field: str, label: DocumentLabel) -> bytes:
    """Decode base64, tolerating a ``data:...;base64,`` prefix and whitespace."""
    payload = encoded.strip()
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    payload = "".join(payload.split())
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ExtractionError(
            field,
            f"{DISPLAY_NAMES[label]} is not valid base64-encoded data.",
        )


def extract_pdf_text(data: bytes, *, field: str, label: DocumentLabel) -> str:
    """Extract the text of every page, separated by blank lines."""
    name = DISPLAY_NAMES[label]
    try:
        reader = PdfReader(BytesIO(data))
        if reader.is_encrypted and reader.decrypt("") == PasswordType.NOT_DECRYPTED:
            raise ExtractionError(
                field,
                f"Unable to extract text from {name} PDF. "
                "The file is password-protected.",
            )
        pages = [page.extract_text() or "" for page in reader.pages]
    except ExtractionError:
        raise
    except Exception as e:
        logger.warning("PDF parse error for %s: %s", field, e)
        raise ExtractionError(
            field,
            f"Unable to extract text from {name} PDF. "
            "The file may be corrupted or password-protected.",
        )

    text = "\n\n".join(p.strip() for p in pages if p.strip())
    if not text:
        raise ExtractionError(
            field,
            f"Unable to extract text from {name} PDF. "
            "The file may contain only images (OCR not supported).",
        )
    logger.info("Extracted %d chars from %s (%d pages)", len(text), field, len(pages))
    return text


def extract_text(document: SourceDocument) -> str:
    """Return non-empty plain text for a source document."""
    if document.text is not None:
        text = document.text.strip()
        if not text:
            raise InputValidationError(
                code="MISSING_INPUT",
                message=f"{DISPLAY_NAMES[document.label]} text is required.",
            )
        return text

    if not document.encoded or not document.encoded.strip():
        raise InputValidationError(
            code="MISSING_INPUT",
            message=f"{DISPLAY_NAMES[document.label]} PDF is required.",
        )
    data = decode_payload(document.encoded, field=document.field, label=document.label)
    return extract_pdf_text(data, field=document.field, label=document.label)
