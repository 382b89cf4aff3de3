"""Unit tests for BM25 ranking."""

from __future__ import annotations

import math

import pytest

from cdi_optimizer.services.ranker import rank, rank_chunks, score_chunks, tokenize

CHUNKS = [
    "Admission criteria for community acquired pneumonia with hypoxia.",
    "Sepsis with lactate above four and hypotension requires admission.",
    "Discharge planning and follow up instructions for outpatient care.",
    "Heart failure exacerbation with pulmonary edema on imaging.",
]


class TestTokenize:
    def test_lowercases_strips_punctuation_and_short_tokens(self) -> None:
        assert tokenize("Lactate >4.0 mmol/L, BP 84/50!") == ["lactate", "mmol"]

    def test_empty(self) -> None:
        assert tokenize("") == []
        assert tokenize("a an of to") == []


class TestScoreChunks:
    def test_single_chunk_known_value(self) -> None:
        # N=1, df=1, tf=1, dl=avgDl -> idf=ln(4/3), tfNorm=1
        assert score_chunks("lactate", ["lactate level"]) == [
            pytest.approx(math.log(4 / 3))
        ]

    def test_absent_tokens_contribute_zero(self) -> None:
        scores = score_chunks("pneumonia", CHUNKS)
        assert scores[0] > 0
        assert scores[1:] == [0.0, 0.0, 0.0]

    def test_empty_chunks(self) -> None:
        assert score_chunks("anything", []) == []

    def test_rarer_token_weighs_more(self) -> None:
        chunks = ["fever cough", "fever rash", "fever lactate"]
        scores = score_chunks("fever lactate", chunks)
        assert scores[2] > scores[0] == scores[1]


class TestRank:
    def test_empty_chunk_list(self) -> None:
        assert rank("sepsis", [], 5) == []
        assert rank_chunks("sepsis", [], 5) == []

    def test_returns_at_most_k(self) -> None:
        assert len(rank("sepsis admission", CHUNKS, 2)) == 2
        assert len(rank("sepsis admission", CHUNKS, 10)) == len(CHUNKS)

    def test_results_drawn_from_input(self) -> None:
        assert set(rank("sepsis hypotension", CHUNKS, 3)) <= set(CHUNKS)

    def test_sorted_by_non_increasing_score(self) -> None:
        ranked = rank_chunks("sepsis admission hypotension imaging", CHUNKS, 4)
        scores = [r.score for r in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_repeated_unique_token_ranks_first(self) -> None:
        chunks = list(CHUNKS)
        chunks[3] = chunks[3] + " vasopressor" * 8
        for k in (1, 2, 4):
            assert rank("vasopressor", chunks, k)[0] == chunks[3]

    def test_no_query_tokens_keeps_original_order(self) -> None:
        ranked = rank_chunks("an of to", CHUNKS, 3)
        assert [r.chunk_index for r in ranked] == [0, 1, 2]
        assert all(r.score == 0.0 for r in ranked)

    def test_ties_keep_original_order(self) -> None:
        chunks = ["sepsis bundle", "unrelated text here", "sepsis bundle"]
        ranked = rank_chunks("sepsis", chunks, 3)
        assert [r.chunk_index for r in ranked] == [0, 2, 1]

    def test_zero_k(self) -> None:
        assert rank("sepsis", CHUNKS, 0) == []
