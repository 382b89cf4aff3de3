"""Strip markdown artifacts from generated text."""

from __future__ import annotations

import re

from cdi_optimizer.models.schemas import MissingCriterion

_CODE_FENCE = re.compile(r"```[a-zA-Z]*")
_HEADING = re.compile(r"^[ \t]*#{1,6}[ \t]*", re.MULTILINE)
_BULLET = re.compile(r"^[ \t]*[-*+•][ \t]+", re.MULTILINE)
_BOLD = re.compile(r"(\*\*|__)(.+?)\1", re.DOTALL)
_ITALIC_STAR = re.compile(r"(?<![\w*])\*(?=\S)(.+?)(?<=\S)\*(?![\w*])")
_ITALIC_UNDERSCORE = re.compile(r"(?<![\w_])_(?=\S)(.+?)(?<=\S)_(?![\w_])")
_INLINE_CODE = re.compile(r"`([^`]*)`")
_EXTRA_BLANK_LINES = re.compile(r"\n{3,}")


def sanitize_text(text: str) -> str:
    """Remove headings, emphasis, bullets and code fences; keep line structure."""
    if not text:
        return ""
    text = text.replace("\r\n", "\n")
    text = _CODE_FENCE.sub("", text)
    text = _HEADING.sub("", text)
    text = _BULLET.sub("", text)
    text = _BOLD.sub(r"\2", text)
    text = _ITALIC_STAR.sub(r"\1", text)
    text = _ITALIC_UNDERSCORE.sub(r"\1", text)
    text = _INLINE_CODE.sub(r"\1", text)
    text = "\n".join(line.rstrip() for line in text.split("\n"))
    text = _EXTRA_BLANK_LINES.sub("\n\n", text)
    return text.strip()


def sanitize_narrative(text: str) -> str:
    """Sanitize and collapse the narrative into one continuous paragraph."""
    return " ".join(sanitize_text(text).split())


def sanitize_gap_entry(entry: MissingCriterion) -> MissingCriterion:
    return entry.model_copy(
        update={
            "mcg_clause": sanitize_text(entry.mcg_clause),
            "evidence_in_notes": sanitize_text(entry.evidence_in_notes) or "None",
            "required_documentation": sanitize_text(entry.required_documentation),
        }
    )
