"""Paragraph- and sentence-aware chunker for guideline text."""

from __future__ import annotations

import re

PARAGRAPH_JOINER = "\n\n"
SENTENCE_JOINER = " "

# A buffer still short of min_len may grow to this multiple of max_len
# rather than be flushed undersized.
OVERFLOW_FACTOR = 1.2

_HORIZONTAL_WS = re.compile(r"[^\S\n]+")
_PARAGRAPH_BREAK = re.compile(r"\n{2,}")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


def normalize_whitespace(text: str) -> str:
    """Normalize line endings, collapse horizontal whitespace and trim lines."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _HORIZONTAL_WS.sub(" ", text)
    text = re.sub(r" ?\n ?", "\n", text)
    return text.strip()


def split_paragraphs(text: str) -> list[str]:
    """Split normalized text on blank lines, dropping empty paragraphs."""
    return [p.strip() for p in _PARAGRAPH_BREAK.split(text) if p.strip()]


def _pack_paragraphs(paragraphs: list[str], min_len: int, max_len: int) -> list[str]:
    chunks: list[str] = []
    current = ""

    for para in paragraphs:
        joined_len = len(para)
        if current:
            joined_len += len(current) + len(PARAGRAPH_JOINER)

        if joined_len <= max_len:
            current = f"{current}{PARAGRAPH_JOINER}{para}" if current else para
        elif len(current) >= min_len:
            chunks.append(current)
            current = para
        elif joined_len <= max_len * OVERFLOW_FACTOR:
            current = f"{current}{PARAGRAPH_JOINER}{para}" if current else para
        else:
            if current:
                chunks.append(current)
            current = para

    if current:
        chunks.append(current)
    return chunks


def _split_sentences(chunk: str, max_len: int) -> list[str]:
    """Re-split an oversized chunk greedily on sentence boundaries."""
    pieces: list[str] = []
    buf = ""
    for sentence in _SENTENCE_BREAK.split(chunk):
        if not sentence:
            continue
        joined_len = len(sentence)
        if buf:
            joined_len += len(buf) + len(SENTENCE_JOINER)
        if joined_len <= max_len:
            buf = f"{buf}{SENTENCE_JOINER}{sentence}" if buf else sentence
        else:
            if buf:
                pieces.append(buf)
            buf = sentence
    if buf:
        pieces.append(buf)
    return pieces


def chunk_text(text: str, min_len: int = 400, max_len: int = 700) -> list[str]:
    """Split text into ordered chunks of roughly [min_len, max_len] characters.

    Paragraphs are packed greedily. A buffer below ``min_len`` may overflow
    once up to ``OVERFLOW_FACTOR * max_len``; anything still above
    ``max_len`` afterwards is re-split on sentence boundaries. A single
    sentence longer than ``max_len`` is kept whole.
    """
    if min_len > max_len:
        raise ValueError(f"min_len ({min_len}) must not exceed max_len ({max_len})")

    normalized = normalize_whitespace(text)
    if not normalized:
        return []

    packed = _pack_paragraphs(split_paragraphs(normalized), min_len, max_len)

    final: list[str] = []
    for chunk in packed:
        if len(chunk) <= max_len:
            final.append(chunk)
        else:
            final.extend(_split_sentences(chunk, max_len))
    return final
