"""Client for the arXiv export API.

Responses are Atom feeds; feedparser already normalizes single and repeated
``entry``/``author``/``link``/``category`` elements into lists, so a feed
with one entry parses exactly like a feed with many.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

import feedparser
import httpx

from deep_synthesis.core.exceptions import SearchError
from deep_synthesis.schemas.paper import (
    Category,
    PaperLink,
    PaperRecord,
    SearchParams,
    SearchResponse,
)
from deep_synthesis.utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_BASE_URL = "https://export.arxiv.org/api/query"
PAGE_SIZE = 100
SECOND_PAGE_SIZE = 50
DOI_RESOLVER_PREFIXES = ("http://dx.doi.org/", "https://dx.doi.org/", "https://doi.org/", "http://doi.org/")


def ensure_https(url: Optional[str]) -> Optional[str]:
    if url and url.startswith("http://"):
        return "https://" + url[len("http://"):]
    return url


def _clean(text: Optional[str]) -> str:
    return " ".join((text or "").split())


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def format_bibtex(paper: PaperRecord) -> str:
    """BibTeX ``@article`` entry keyed by the arXiv id."""
    authors = " and ".join(name.split()[-1] for name in paper.authors if name.split())
    lines = [
        f"@article{{{paper.arxiv_id},",
        f"  title={{{paper.title}}},",
        f"  author={{{authors}}},",
        f"  journal={{arXiv preprint arXiv:{paper.arxiv_id}}},",
        f"  year={{{paper.year}}},",
        f"  url={{{paper.abstract_url or ''}}}",
    ]
    if paper.doi:
        lines[-1] += ","
        lines.append(f"  doi={{{paper.doi}}}")
    return "\n".join(lines) + "\n}"


class ArxivClient:
    """Query the arXiv API and normalize entries into ``PaperRecord``s."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30,
        default_max_results: int = 150,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.default_max_results = default_max_results
        self._http_client = http_client
        self.logger = LOGGER

    def build_search_params(self, params: SearchParams) -> Dict[str, Any]:
        query: Dict[str, Any] = {"search_query": params.query}
        if params.start is not None:
            query["start"] = params.start
        query["max_results"] = params.max_results or self.default_max_results
        if params.sort_by:
            query["sortBy"] = params.sort_by
            if params.sort_order:
                query["sortOrder"] = params.sort_order
        return query

    def build_search_url(self, params: SearchParams) -> str:
        return str(httpx.URL(self.base_url, params=self.build_search_params(params)))

    async def search(
        self,
        params: SearchParams,
        throttle: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> SearchResponse:
        """Run a search, fetching a second page when more than 100 results are wanted.

        Args:
            params: Query, paging and sort options
            throttle: Awaited before every page after the first, so a caller
                enforcing a request interval also spaces the page requests

        Raises:
            SearchError: If the request or feed parsing fails
        """
        requested = params.max_results or self.default_max_results
        start = params.start or 0
        first_params = params.model_copy(
            update={"start": start, "max_results": min(requested, PAGE_SIZE)}
        )

        try:
            first = await self._fetch(first_params)
            if requested > PAGE_SIZE and first.total_results > PAGE_SIZE:
                second_params = params.model_copy(
                    update={"start": start + PAGE_SIZE, "max_results": SECOND_PAGE_SIZE}
                )
                if throttle is not None:
                    await throttle()
                second = await self._fetch(second_params)
                return SearchResponse(
                    papers=first.papers + second.papers,
                    total_results=first.total_results,
                    start_index=first.start_index,
                    items_per_page=first.items_per_page + second.items_per_page,
                )
            return first

        except SearchError:
            raise
        except Exception as e:
            self.logger.error(
                f"ArXiv search failed: {str(e)}",
                exc_info=True,
                extra={"query": params.query},
            )
            raise SearchError(f"ArXiv search failed: {str(e)}", original_error=e)

    async def _fetch(self, params: SearchParams) -> SearchResponse:
        self.logger.debug(
            "Querying arXiv",
            extra={"query": params.query, "start": params.start, "max_results": params.max_results},
        )
        async with self._client() as client:
            response = await client.get(self.base_url, params=self.build_search_params(params))
        if response.status_code != 200:
            raise SearchError(
                f"ArXiv search failed: HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return self.parse_feed(response.text)

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    def parse_feed(self, text: str) -> SearchResponse:
        """Parse an Atom response body.

        Raises:
            SearchError: If the feed is an arXiv error document or not XML at all
        """
        parsed = feedparser.parse(text)
        if parsed.get("bozo") and not parsed.entries and not parsed.feed:
            raise SearchError(f"ArXiv search failed: unreadable feed ({parsed.get('bozo_exception')})")

        papers: List[PaperRecord] = []
        for entry in parsed.entries:
            if "/api/errors" in entry.get("id", ""):
                raise SearchError(f"ArXiv search failed: {_clean(entry.get('summary'))}")
            paper = self.parse_entry(entry)
            if paper is not None:
                papers.append(paper)

        feed = parsed.feed
        return SearchResponse(
            papers=papers,
            total_results=_to_int(feed.get("opensearch_totalresults"), len(papers)),
            start_index=_to_int(feed.get("opensearch_startindex")),
            items_per_page=_to_int(feed.get("opensearch_itemsperpage"), len(papers)),
        )

    def parse_entry(self, entry: Dict[str, Any]) -> Optional[PaperRecord]:
        """Normalize one feed entry; entries without authors are skipped."""
        entry_id = entry.get("id", "")
        authors = [_clean(a.get("name")) for a in entry.get("authors", []) if _clean(a.get("name"))]
        if not authors:
            self.logger.warning(f"Skipping arXiv entry without authors: {entry_id}")
            return None

        links = [
            PaperLink(
                href=link.get("href", ""),
                rel=link.get("rel"),
                type=link.get("type"),
                title=link.get("title"),
            )
            for link in entry.get("links", [])
            if link.get("href")
        ]
        pdf_url = next((link.href for link in links if link.title == "pdf"), None)
        abstract_url = ensure_https(
            next((link.href for link in links if link.rel == "alternate"), None)
        )

        doi = next((link.href for link in links if link.title == "doi"), None)
        if doi:
            for prefix in DOI_RESOLVER_PREFIXES:
                if doi.startswith(prefix):
                    doi = doi[len(prefix):]
                    break
        else:
            doi = entry.get("arxiv_doi") or None

        categories = [
            Category(term=tag.get("term"), scheme=tag.get("scheme"))
            for tag in entry.get("tags", [])
            if tag.get("term")
        ]
        primary = entry.get("arxiv_primary_category")
        primary_category = None
        if isinstance(primary, dict) and primary.get("term"):
            primary_category = Category(term=primary["term"], scheme=primary.get("scheme"))
        elif categories:
            primary_category = categories[0]

        affiliation = entry.get("arxiv_affiliation")
        published = entry.get("published") or ""

        paper = PaperRecord(
            arxiv_id=entry_id.rstrip("/").split("/")[-1],
            title=_clean(entry.get("title")),
            abstract=_clean(entry.get("summary")),
            authors=authors,
            affiliations=[_clean(affiliation)] if affiliation else [],
            year=published[:4],
            submitted_date=published or None,
            last_updated_date=entry.get("updated") or None,
            links=links,
            pdf_url=pdf_url,
            abstract_url=abstract_url,
            doi=doi,
            primary_category=primary_category,
            categories=categories,
            comments=entry.get("arxiv_comment"),
            journal_ref=entry.get("arxiv_journal_ref"),
            source="arxiv",
        )
        paper.bibtex = format_bibtex(paper)
        return paper
