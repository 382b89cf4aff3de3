"""Pydantic models for guideline retrieval results."""

from __future__ import annotations

from pydantic import BaseModel


class RankedChunk(BaseModel):
    """A guideline chunk with its BM25 score against the note text."""

    text: str
    score: float
    chunk_index: int
