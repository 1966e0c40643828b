"""Tests for review synthesis."""

import json
from uuid import uuid4

import pytest

from deep_synthesis.core.exceptions import ValidationError
from deep_synthesis.schemas.brief import Reference
from deep_synthesis.services import BriefGenerationService, PaperSearchService
from deep_synthesis.services.brief_generation_service import _paper_entry, build_bibtex


@pytest.fixture
def service(registry, brief_repository, paper_repository):
    return BriefGenerationService(registry, brief_repository, paper_repository)


class TestGenerate:

    @pytest.mark.asyncio
    async def test_requires_references(self, service, brief_repository, chat):
        brief = await brief_repository.create_brief(query="q")

        with pytest.raises(ValidationError) as exc_info:
            await service.generate(brief)

        assert str(exc_info.value) == "No papers selected for brief generation"
        assert chat.requests == []

    @pytest.mark.asyncio
    async def test_review_and_bibtex_are_stored(
        self, service, brief_repository, paper_repository, make_record, chat
    ):
        brief = await brief_repository.create_brief(query="How do transformers work?")
        paper = await paper_repository.upsert(make_record())
        await brief_repository.set_references(brief.id, [PaperSearchService.reference_for(paper)])
        chat.reply("# Transformers\n\n## Findings\nAttention suffices [1].\n")

        generated = await service.generate(brief)

        assert generated.review == "# Transformers\n\n## Findings\nAttention suffices [1]."
        assert generated.bibtex.startswith("@article{ref1,\ntitle={Attention Is All You Need},")
        assert brief.review == generated.review
        assert brief.bibtex == generated.bibtex

        prompt = chat.requests[0]["messages"][0]["content"]
        payload = json.loads(prompt.split("Papers (JSON):\n", 1)[1])
        assert payload[0]["citation_key"] == "[1]"
        assert payload[0]["arxivId"] == "2301.00001v1"
        assert "response_format" not in chat.requests[0]

    @pytest.mark.asyncio
    async def test_reference_without_stored_paper_uses_citation_text(self, service, brief_repository, chat):
        brief = await brief_repository.create_brief(query="q")
        await brief_repository.set_references(
            brief.id,
            [Reference(paper_id="not-a-uuid", text="Jane Doe (2021). Graph Methods", pdf_url="https://x/1.pdf")],
        )
        chat.reply("# Review")

        generated = await service.generate(brief)

        assert "title={Graph Methods}" in generated.bibtex
        assert "author={Jane Doe}" in generated.bibtex
        assert "year={2021}" in generated.bibtex


def test_paper_entry_fallback_values():
    entry = _paper_entry(Reference(paper_id=str(uuid4()), text="unparseable"), None)

    assert entry["year"] == "Year not available"
    assert entry["abstract"] == "Abstract not available"


def test_bibtex_numbering_matches_citations():
    bibtex = build_bibtex([
        {"title": "A", "authors": ["X", "Y"], "year": "2020", "pdfUrl": "u1"},
        {"title": "B", "authors": ["Z"], "year": "2021", "pdfUrl": ""},
    ])

    assert bibtex == (
        "@article{ref1,\ntitle={A},\nauthor={X and Y},\nyear={2020},\nurl={u1}\n}"
        "\n\n"
        "@article{ref2,\ntitle={B},\nauthor={Z},\nyear={2021},\nurl={}\n}"
    )

