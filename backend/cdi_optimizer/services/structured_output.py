"""Best-effort extraction of JSON objects from generated text."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from cdi_optimizer.errors import StructuredParseError

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```[a-zA-Z]*[ \t]*\n?(.*?)```", re.DOTALL)

_decoder = json.JSONDecoder()


def _from_fenced_block(text: str) -> dict[str, Any] | None:
    for match in _FENCED_BLOCK.finditer(text):
        body = match.group(1).strip()
        try:
            obj = json.loads(body)
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            return obj
    return None


def _from_first_object(text: str) -> dict[str, Any] | None:
    """Scan each ``{`` in order and return the first complete JSON object.

    Braces in leading prose that do not open a valid object are skipped, so
    the outermost real object wins over its own nested members.
    """
    for match in re.finditer(r"\{", text):
        try:
            obj, _ = _decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            return obj
    return None


def extract_json_object(
    text: str, *, code: str = "STRUCTURED_PARSE_ERROR"
) -> dict[str, Any]:
    """Return the JSON object embedded in ``text``.

    Looks for a fenced code block first, then falls back to the first
    top-level brace-delimited object. Raises StructuredParseError otherwise.
    """
    if not text or not text.strip():
        raise StructuredParseError(code=code, message="Empty response from model")

    obj = _from_fenced_block(text)
    if obj is None:
        obj = _from_first_object(text)
    if obj is None:
        logger.debug("No JSON object found in response: %r", text[:300])
        raise StructuredParseError(
            code=code, message="Model response did not contain a JSON object"
        )
    return obj
