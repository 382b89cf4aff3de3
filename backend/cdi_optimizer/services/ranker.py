"""Lexical BM25 ranking of guideline chunks against note text."""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from collections.abc import Sequence

from cdi_optimizer.models.retrieval import RankedChunk

logger = logging.getLogger(__name__)

K1 = 1.5
B = 0.75
MIN_TOKEN_LEN = 3

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


def tokenize(text: str) -> list[str]:
    """Lower-case, strip punctuation, keep tokens longer than two characters."""
    cleaned = _NON_ALNUM.sub(" ", text.lower())
    return [t for t in cleaned.split() if len(t) >= MIN_TOKEN_LEN]


def score_chunks(
    query: str,
    chunks: Sequence[str],
    *,
    k1: float = K1,
    b: float = B,
) -> list[float]:
    """Return one BM25 score per chunk, in chunk order."""
    if not chunks:
        return []

    query_tokens = tokenize(query)
    chunk_tokens = [tokenize(c) for c in chunks]
    n = len(chunks)
    avg_dl = sum(len(tokens) for tokens in chunk_tokens) / n

    df: Counter[str] = Counter()
    for tokens in chunk_tokens:
        df.update(set(tokens))

    scores: list[float] = []
    for tokens in chunk_tokens:
        dl = len(tokens)
        tf = Counter(tokens)
        score = 0.0
        for qt in query_tokens:
            freq = tf.get(qt, 0)
            if not freq:
                continue
            idf = math.log((n - df[qt] + 0.5) / (df[qt] + 0.5) + 1)
            # avg_dl > 0 whenever any chunk contains qt
            tf_norm = (freq * (k1 + 1)) / (freq + k1 * (1 - b + b * dl / avg_dl))
            score += idf * tf_norm
        scores.append(score)
    return scores


def rank_chunks(query: str, chunks: Sequence[str], k: int = 5) -> list[RankedChunk]:
    """Return the top-k chunks by descending score; ties keep chunk order."""
    if not chunks or k <= 0:
        return []

    scores = score_chunks(query, chunks)
    order = sorted(range(len(chunks)), key=lambda i: -scores[i])
    ranked = [
        RankedChunk(text=chunks[i], score=scores[i], chunk_index=i) for i in order[:k]
    ]

    logger.info(
        "BM25 ranked %d chunks, returning top %d (best=%.3f)",
        len(chunks),
        len(ranked),
        ranked[0].score,
    )
    for r in ranked:
        logger.debug(
            "  chunk[%d] score=%.3f text=%r",
            r.chunk_index,
            r.score,
            r.text[:100] + ("..." if len(r.text) > 100 else ""),
        )
    return ranked


def rank(query: str, chunks: Sequence[str], k: int = 5) -> list[str]:
    """Top-k chunk texts ordered by descending relevance."""
    return [r.text for r in rank_chunks(query, chunks, k)]
