"""Synthesize the literature review for a brief."""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import UUID

from deep_synthesis.core.config import ScoringSettings
from deep_synthesis.core.exceptions import ValidationError
from deep_synthesis.core.provider_registry import ProviderRegistry
from deep_synthesis.database.models import Brief, Paper
from deep_synthesis.prompts.system_prompts import BRIEF_GENERATION_PROMPT
from deep_synthesis.repositories.brief_repository import BriefRepository
from deep_synthesis.repositories.paper_repository import PaperRepository
from deep_synthesis.schemas.brief import Reference
from deep_synthesis.services.base_service import BaseLLMService

_YEAR_IN_TEXT = re.compile(r"\((\d{4})\)")


@dataclass
class GeneratedBrief:
    review: str
    bibtex: str


def _paper_entry(reference: Reference, paper: Optional[Paper]) -> Dict[str, Any]:
    """Citation data for one reference, falling back to its citation text."""
    if paper is not None:
        return {
            "title": paper.title,
            "authors": list(paper.authors or []),
            "year": paper.year,
            "abstract": paper.abstract or "Abstract not available",
            "arxivId": paper.arxiv_id,
            "pdfUrl": reference.pdf_url or paper.pdf_url or "",
        }

    # "Authors (YEAR). Title"
    head, _, title = reference.text.partition("). ")
    year_match = _YEAR_IN_TEXT.search(reference.text)
    return {
        "title": title or "Title not available",
        "authors": [head.split(" (")[0] or "Author not available"],
        "year": year_match.group(1) if year_match else "Year not available",
        "abstract": "Abstract not available",
        "arxivId": "",
        "pdfUrl": reference.pdf_url,
    }


def build_bibtex(entries: List[Dict[str, Any]]) -> str:
    """``@article{refN,...}`` entries numbered like the inline citations."""
    blocks = []
    for index, entry in enumerate(entries, start=1):
        blocks.append(
            f"@article{{ref{index},\n"
            f"title={{{entry['title']}}},\n"
            f"author={{{' and '.join(entry['authors'])}}},\n"
            f"year={{{entry['year']}}},\n"
            f"url={{{entry['pdfUrl'] or ''}}}\n"
            "}"
        )
    return "\n\n".join(blocks)


class BriefGenerationService(BaseLLMService):
    def __init__(
        self,
        registry: ProviderRegistry,
        brief_repository: BriefRepository,
        paper_repository: PaperRepository,
        provider_name: str = "openai",
        scoring_settings: Optional[ScoringSettings] = None,
    ):
        super().__init__(registry, provider_name)
        self.brief_repository = brief_repository
        self.paper_repository = paper_repository
        self.scoring_settings = scoring_settings or ScoringSettings()

    def validate(self, brief: Brief) -> None:
        if brief is None:
            raise ValidationError("Brief is required to generate a review")
        if not brief.get_references():
            raise ValidationError("No papers selected for brief generation")

    async def generate(self, brief: Brief) -> GeneratedBrief:
        return await self.execute(brief)

    async def run(self, brief: Brief) -> GeneratedBrief:
        """Write the review and BibTeX for the brief's references and store both."""
        references = brief.get_references()
        papers = await self._load_papers(references)
        entries = [_paper_entry(ref, papers.get(ref.paper_id)) for ref in references]

        payload = [
            {"citation_number": index, "citation_key": f"[{index}]", **entry}
            for index, entry in enumerate(entries, start=1)
        ]
        prompt = BRIEF_GENERATION_PROMPT.format(
            query=brief.query,
            papers=json.dumps(payload, indent=2, ensure_ascii=False),
        )

        response = await self.complete(
            prompt,
            temperature=self.scoring_settings.brief_temperature,
            max_tokens=self.scoring_settings.brief_max_tokens,
        )
        generated = GeneratedBrief(review=response.content.strip(), bibtex=build_bibtex(entries))

        await self.brief_repository.update_fields(
            brief.id, review=generated.review, bibtex=generated.bibtex
        )
        self.logger.info(
            f"Generated brief with {len(entries)} references",
            extra={"brief_id": str(brief.id), "model": response.model},
        )
        return generated

    async def _load_papers(self, references: List[Reference]) -> Dict[str, Paper]:
        ids = []
        for reference in references:
            try:
                ids.append(UUID(reference.paper_id))
            except ValueError:
                self.logger.warning(f"Reference has a malformed paper id: {reference.paper_id}")
        papers = await self.paper_repository.get_by_ids(ids)
        return {str(paper.id): paper for paper in papers}
