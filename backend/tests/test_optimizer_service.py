"""Tests for request validation, extraction and bounding ahead of generation."""

from __future__ import annotations

import pytest

from cdi_optimizer.config import settings
from cdi_optimizer.errors import ExtractionError, GenerationError, InputValidationError
from cdi_optimizer.models.clinical import SourceDocument
from cdi_optimizer.models.schemas import OptimizeRequest
from cdi_optimizer.services import optimizer_service
from cdi_optimizer.services.optimizer_service import (
    bound_text,
    collect_documents,
    combine_notes,
    optimize_documents,
)
from factories import (
    ER_NOTE,
    GUIDELINE_TEXT,
    HP_LINES,
    b64,
    build_blank_pdf,
    build_text_pdf,
    called_stages,
    happy_responses,
    make_scripted_client,
)


def _request(**overrides) -> OptimizeRequest:
    payload = {
        "erText": ER_NOTE,
        "hpPdfBase64": b64(build_text_pdf(HP_LINES)),
        "mcgPdfBase64": b64(build_text_pdf(GUIDELINE_TEXT.split("\n\n"))),
    }
    payload.update(overrides)
    return OptimizeRequest.model_validate(payload)


def _patch_extracted(monkeypatch, texts: dict[str, str]) -> None:
    """Bypass PDF parsing: return canned text keyed by request field."""

    def _extract(document: SourceDocument) -> str:
        return texts[document.field]

    monkeypatch.setattr(optimizer_service, "extract_text", _extract)


class TestCollectDocuments:
    def test_er_text_preferred_over_pdf(self) -> None:
        er, hp, guideline = collect_documents(_request(erPdfBase64="abcd"))
        assert er.field == "erText"
        assert er.text == ER_NOTE
        assert hp.field == "hpPdfBase64"
        assert guideline.label == "Guideline"

    def test_er_pdf_used_when_text_blank(self) -> None:
        er, _, _ = collect_documents(_request(erText="  ", erPdfBase64="abcd"))
        assert er.field == "erPdfBase64"
        assert er.encoded == "abcd"

    @pytest.mark.parametrize(
        ("overrides", "fragment"),
        [
            ({"erText": None}, "erText or erPdfBase64"),
            ({"erText": ""}, "erText or erPdfBase64"),
            ({"hpPdfBase64": None}, "hpPdfBase64"),
            ({"mcgPdfBase64": "   "}, "mcgPdfBase64"),
        ],
    )
    def test_missing_fields(self, overrides, fragment) -> None:
        with pytest.raises(InputValidationError) as exc_info:
            collect_documents(_request(**overrides))
        assert exc_info.value.status_code == 400
        assert fragment in exc_info.value.message


class TestBounding:
    def test_bound_text_head_truncates(self) -> None:
        assert bound_text("abcdef", 4, name="x") == "abcd"
        assert bound_text("abc", 4, name="x") == "abc"

    def test_combine_notes_labels_sections(self) -> None:
        combined = combine_notes("er body", "hp body")
        assert combined == "ER NOTES:\ner body\n\nINPATIENT H&P:\nhp body"


class TestOptimizeDocuments:
    async def test_end_to_end_with_pdfs(self) -> None:
        client = make_scripted_client(happy_responses())

        result = await optimize_documents(_request(), client)

        assert result.revised_hpi
        assert len(result.missing_criteria) == 1
        facts_call = client.complete.call_args_list[0]
        user_content = facts_call.args[0][-1].content
        assert "ER NOTES:" in user_content
        assert "INPATIENT H&P:" in user_content
        assert "Received 2 liters normal saline" in user_content

    async def test_missing_field_makes_no_generation_call(self) -> None:
        client = make_scripted_client(happy_responses())

        with pytest.raises(InputValidationError):
            await optimize_documents(_request(mcgPdfBase64=None), client)

        client.complete.assert_not_called()

    async def test_invalid_pdf_makes_no_generation_call(self) -> None:
        client = make_scripted_client(happy_responses())

        with pytest.raises(ExtractionError) as exc_info:
            await optimize_documents(_request(hpPdfBase64=b64(b"not a pdf")), client)

        assert exc_info.value.field == "hpPdfBase64"
        client.complete.assert_not_called()

    async def test_image_only_guideline_is_rejected(self) -> None:
        client = make_scripted_client(happy_responses())

        with pytest.raises(ExtractionError) as exc_info:
            await optimize_documents(
                _request(mcgPdfBase64=b64(build_blank_pdf())), client
            )

        assert exc_info.value.field == "mcgPdfBase64"
        assert "MCG Guideline" in exc_info.value.message
        assert called_stages(client) == []

    async def test_extraction_runs_before_client_is_built(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "ai_gateway_api_key", None)

        with pytest.raises(ExtractionError):
            await optimize_documents(_request(mcgPdfBase64="%%%"))

    async def test_unconfigured_backend(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "ai_gateway_api_key", None)

        with pytest.raises(GenerationError) as exc_info:
            await optimize_documents(_request())

        assert exc_info.value.code == "NOT_CONFIGURED"

    async def test_oversized_guideline_is_bounded(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "debug", True)
        paragraph = (
            "Admission is supported by hypotension below 90 systolic despite "
            "fluids, lactate above 4 or new altered mental status. "
        ) * 4
        guideline = "\n\n".join(f"Clause {i}. {paragraph}" for i in range(250))
        assert len(guideline) > 100_000
        _patch_extracted(
            monkeypatch,
            {
                "erText": ER_NOTE,
                "hpPdfBase64": "\n".join(HP_LINES),
                "mcgPdfBase64": guideline,
            },
        )
        client = make_scripted_client(happy_responses())

        result = await optimize_documents(_request(), client)

        assert result.debug is not None
        assert result.debug.used_full_guideline is False
        assert 0 < len(result.debug.top_k_chunks) <= settings.top_k
        gap_call = next(
            c
            for c in client.complete.call_args_list
            if c.kwargs["stage"] == "gap_analysis"
        )
        gap_prompt = "\n".join(m.content for m in gap_call.args[0])
        assert "Clause 249." not in gap_prompt

    async def test_notes_are_bounded(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "max_notes_chars", 200)
        _patch_extracted(
            monkeypatch,
            {
                "erText": "E" * 500,
                "hpPdfBase64": "H" * 500,
                "mcgPdfBase64": GUIDELINE_TEXT,
            },
        )
        client = make_scripted_client(happy_responses())

        await optimize_documents(_request(), client)

        facts_prompt = client.complete.call_args_list[0].args[0][-1].content
        assert "E" * 187 in facts_prompt
        assert "INPATIENT H&P" not in facts_prompt
