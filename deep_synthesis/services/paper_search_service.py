"""Run a brief's active search terms against arXiv and store what they find."""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence
from uuid import UUID

from deep_synthesis.core.exceptions import SearchError, ValidationError
from deep_synthesis.database.models import Brief, Paper
from deep_synthesis.repositories.brief_repository import BriefRepository
from deep_synthesis.repositories.paper_brief_repository import PaperBriefRepository
from deep_synthesis.repositories.paper_repository import PaperRepository
from deep_synthesis.schemas.brief import (
    Reference,
    SearchQuery,
    SearchQueryStatus,
    SearchQueryWithStatus,
    with_status,
)
from deep_synthesis.schemas.paper import SearchParams, SearchResponse
from deep_synthesis.services.base_service import BaseService
from deep_synthesis.services.search.rate_limiter import SearchRateLimiter
from deep_synthesis.utils.query_formatter import apply_date_filter, format_arxiv_query, sanitize_query

StatusCallback = Callable[[SearchQueryWithStatus], None]

RESULTS_PER_TERM = 100
NON_RETRYABLE_STATUS_CODES = {401, 403}


@dataclass
class PaperSearchOutcome:
    terms: List[SearchQueryWithStatus] = field(default_factory=list)
    # unique papers in the order they were first found
    paper_ids: List[UUID] = field(default_factory=list)

    @property
    def failed(self) -> List[SearchQueryWithStatus]:
        return [t for t in self.terms if t.status == SearchQueryStatus.FAILED]


class PaperSearchService(BaseService):
    """Searches go through the shared rate limiter one term at a time."""

    def __init__(
        self,
        rate_limiter: SearchRateLimiter,
        paper_repository: PaperRepository,
        paper_brief_repository: PaperBriefRepository,
        brief_repository: Optional[BriefRepository] = None,
        results_per_term: int = RESULTS_PER_TERM,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        super().__init__()
        self.brief_repository = brief_repository
        self.rate_limiter = rate_limiter
        self.paper_repository = paper_repository
        self.paper_brief_repository = paper_brief_repository
        self.results_per_term = results_per_term
        self.max_retries = max(0, max_retries)
        self.retry_delay = retry_delay
        self._sleep = sleep

    def validate(self, brief: Brief, terms=None, on_status=None) -> None:
        if brief is None:
            raise ValidationError("Brief is required to search for papers")
        candidates = terms if terms is not None else brief.get_search_queries()
        if not any(term.is_active for term in candidates):
            raise ValidationError("Please add at least one active search query")

    async def search_for_brief(
        self,
        brief: Brief,
        terms: Optional[Sequence[SearchQuery]] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> PaperSearchOutcome:
        return await self.execute(brief, terms, on_status)

    def build_params(self, term: str, brief: Brief) -> SearchParams:
        query = apply_date_filter(format_arxiv_query(sanitize_query(term)), brief.get_date_constraint())
        return SearchParams(
            query=query,
            max_results=self.results_per_term,
            sort_by="relevance",
            sort_order="descending",
        )

    async def _search_with_retry(self, params: SearchParams) -> SearchResponse:
        """Search through the limiter, retrying failures with exponential backoff.

        Rejections with HTTP 401/403 are raised immediately.
        """
        attempt = 0
        while True:
            try:
                return await self.rate_limiter.search(params)
            except SearchError as e:
                if e.status_code in NON_RETRYABLE_STATUS_CODES or attempt >= self.max_retries:
                    raise
                wait_time = self.retry_delay * (2 ** attempt)
                attempt += 1
                self.logger.warning(
                    f"ArXiv search failed, retrying in {wait_time}s ({attempt}/{self.max_retries})",
                    extra={"query": params.query, "error": str(e)},
                )
                await self._sleep(wait_time)

    async def run(
        self,
        brief: Brief,
        terms: Optional[Sequence[SearchQuery]] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> PaperSearchOutcome:
        views: Dict[str, SearchQueryWithStatus] = {
            term.id: with_status(term)
            for term in (terms if terms is not None else brief.get_search_queries())
        }
        outcome = PaperSearchOutcome(terms=list(views.values()))
        seen: set = set()

        def report(view: SearchQueryWithStatus, status: SearchQueryStatus, error: Optional[str] = None):
            view.status = status
            view.error = error
            if on_status:
                on_status(view)

        for view in outcome.terms:
            if not view.is_active:
                continue

            report(view, SearchQueryStatus.PROCESSING)
            try:
                params = self.build_params(view.term, brief)
                self.logger.info(
                    f"Searching arXiv for term: {view.term}",
                    extra={"brief_id": str(brief.id), "query": params.query},
                )
                response = await self._search_with_retry(params)

                for record in response.papers:
                    paper = await self.paper_repository.upsert(record)
                    await self.paper_brief_repository.add_search_hit(brief.id, paper.id, view.term)
                    if paper.id not in seen:
                        seen.add(paper.id)
                        outcome.paper_ids.append(paper.id)

                report(view, SearchQueryStatus.COMPLETED)
            except Exception as e:
                self.logger.error(
                    f"Error searching term \"{view.term}\": {str(e)}",
                    exc_info=True,
                    extra={"brief_id": str(brief.id)},
                )
                report(view, SearchQueryStatus.FAILED, str(e) or "Search failed")

        self.logger.info(
            f"Found {len(outcome.paper_ids)} unique papers",
            extra={"brief_id": str(brief.id), "failed_terms": len(outcome.failed)},
        )
        return outcome

    async def set_selected(self, brief_id: UUID, paper_id: UUID, selected: bool) -> bool:
        """Mark a found paper as (de)selected; False when it was never found for the brief."""
        association = await self.paper_brief_repository.set_selected(brief_id, paper_id, selected)
        return association is not None

    @staticmethod
    def reference_for(paper: Paper) -> Reference:
        return Reference(
            paper_id=str(paper.id),
            text=f"{', '.join(paper.authors or [])} ({paper.year}). {paper.title}",
            pdf_url=paper.pdf_url or "",
        )

    async def save_references(self, brief_id: UUID) -> List[Reference]:
        """Store the selected papers as the brief's references, best score first.

        Raises:
            ValidationError: If no paper is selected
        """
        if self.brief_repository is None:
            raise ValidationError("PaperSearchService needs a BriefRepository to save references")

        selected = await self.paper_brief_repository.get_by_brief(brief_id, selected_only=True)
        if not selected:
            raise ValidationError("Please select at least one paper")

        references = [self.reference_for(association.paper) for association in selected]
        await self.brief_repository.set_references(brief_id, references)
        self.logger.info(f"Saved {len(references)} references", extra={"brief_id": str(brief_id)})
        return references
