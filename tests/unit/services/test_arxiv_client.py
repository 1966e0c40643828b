"""Tests for the arXiv Atom client."""

import httpx
import pytest

from deep_synthesis.core.exceptions import SearchError
from deep_synthesis.schemas.paper import PaperRecord, SearchParams
from deep_synthesis.services.search import ArxivClient, format_bibtex

FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom"
      xmlns:opensearch="http://a9.com/-/spec/opensearch/1.1/"
      xmlns:arxiv="http://arxiv.org/schemas/atom">
  <link href="http://arxiv.org/api/query" rel="self" type="application/atom+xml"/>
  <title type="html">ArXiv Query: search_query=all:attention</title>
  <id>http://arxiv.org/api/abc123</id>
  <updated>2024-01-01T00:00:00-05:00</updated>
  <opensearch:totalResults>{total}</opensearch:totalResults>
  <opensearch:startIndex>{start}</opensearch:startIndex>
  <opensearch:itemsPerPage>{per_page}</opensearch:itemsPerPage>
  {entries}
</feed>
"""

ENTRY = """
  <entry>
    <id>http://arxiv.org/abs/{arxiv_id}</id>
    <updated>2023-02-01T00:00:00Z</updated>
    <published>2023-01-15T00:00:00Z</published>
    <title>{title}</title>
    <summary>  We propose a new
      architecture.  </summary>
    {authors}
    <arxiv:comment>15 pages</arxiv:comment>
    <link title="doi" href="http://dx.doi.org/10.1000/xyz123" rel="related"/>
    <link href="http://arxiv.org/abs/{arxiv_id}" rel="alternate" type="text/html"/>
    <link title="pdf" href="http://arxiv.org/pdf/{arxiv_id}" rel="related" type="application/pdf"/>
    <arxiv:primary_category term="cs.CL" scheme="http://arxiv.org/schemas/atom"/>
    <category term="cs.CL" scheme="http://arxiv.org/schemas/atom"/>
    <category term="cs.LG" scheme="http://arxiv.org/schemas/atom"/>
  </entry>
"""

ERROR_ENTRY = """
  <entry>
    <id>http://arxiv.org/api/errors#incorrect_id_format_for_1234</id>
    <title>Error</title>
    <summary>incorrect id format for 1234</summary>
    <author><name>arXiv api core</name></author>
  </entry>
"""


def _entry(arxiv_id="2301.00001v1", title="Attention Is\n      All You Need", authors=("Ashish Vaswani", "Noam Shazeer")):
    author_xml = "".join(f"<author><name>{name}</name></author>" for name in authors)
    return ENTRY.format(arxiv_id=arxiv_id, title=title, authors=author_xml)


def _feed(*entries, total=None, start=0, per_page=None):
    count = len(entries)
    return FEED.format(
        total=count if total is None else total,
        start=start,
        per_page=count if per_page is None else per_page,
        entries="".join(entries),
    )


def _client(handler) -> ArxivClient:
    return ArxivClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestParseFeed:

    def test_entry_is_normalized(self):
        response = ArxivClient().parse_feed(_feed(_entry()))

        assert response.total_results == 1
        paper = response.papers[0]
        assert paper.arxiv_id == "2301.00001v1"
        assert paper.title == "Attention Is All You Need"
        assert paper.abstract == "We propose a new architecture."
        assert paper.authors == ["Ashish Vaswani", "Noam Shazeer"]
        assert paper.year == "2023"
        assert paper.pdf_url == "http://arxiv.org/pdf/2301.00001v1"
        assert paper.abstract_url == "https://arxiv.org/abs/2301.00001v1"
        assert paper.doi == "10.1000/xyz123"
        assert paper.primary_category.term == "cs.CL"
        assert {"cs.CL", "cs.LG"} <= {c.term for c in paper.categories}
        assert paper.comments == "15 pages"
        assert paper.bibtex.startswith("@article{2301.00001v1,")

    def test_single_entry_and_author_parse_like_many(self):
        single = ArxivClient().parse_feed(_feed(_entry(authors=("Solo Author",))))
        many = ArxivClient().parse_feed(
            _feed(_entry(authors=("Solo Author",)), _entry(arxiv_id="2301.00002v1"))
        )

        assert len(single.papers) == 1
        assert single.papers[0].authors == ["Solo Author"]
        assert many.papers[0].authors == single.papers[0].authors
        assert len(many.papers) == 2

    def test_entries_without_authors_are_skipped(self):
        response = ArxivClient().parse_feed(_feed(_entry(authors=()), _entry(arxiv_id="2301.00002v1")))

        assert [p.arxiv_id for p in response.papers] == ["2301.00002v1"]

    def test_empty_feed(self):
        response = ArxivClient().parse_feed(_feed(total=0))

        assert response.papers == []
        assert response.total_results == 0

    def test_error_feed_raises(self):
        with pytest.raises(SearchError) as exc_info:
            ArxivClient().parse_feed(_feed(ERROR_ENTRY))

        assert "incorrect id format for 1234" in str(exc_info.value)


class TestSearch:

    def test_query_parameters(self):
        params = ArxivClient().build_search_params(
            SearchParams(query='ti:"llm"', max_results=20, sort_by="relevance", sort_order="descending")
        )

        assert params == {
            "search_query": 'ti:"llm"',
            "max_results": 20,
            "sortBy": "relevance",
            "sortOrder": "descending",
        }

    def test_default_max_results(self):
        client = ArxivClient(default_max_results=150)

        assert client.build_search_params(SearchParams(query="all:x"))["max_results"] == 150
        assert "max_results=150" in client.build_search_url(SearchParams(query="all:x"))

    @pytest.mark.asyncio
    async def test_single_page(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, text=_feed(_entry()))

        response = await _client(handler).search(SearchParams(query="all:attention", max_results=10))

        assert len(requests) == 1
        assert requests[0].url.params["max_results"] == "10"
        assert requests[0].url.params["start"] == "0"
        assert len(response.papers) == 1

    @pytest.mark.asyncio
    async def test_second_page_when_more_than_a_hundred_wanted(self):
        requests = []

        def handler(request):
            requests.append(request)
            if request.url.params["start"] == "0":
                body = _feed(_entry("2301.00001v1"), _entry("2301.00002v1"), total=180, per_page=100)
            else:
                body = _feed(_entry("2301.00003v1"), total=180, start=100, per_page=50)
            return httpx.Response(200, text=body)

        response = await _client(handler).search(SearchParams(query="all:attention", max_results=150))

        assert [(r.url.params["start"], r.url.params["max_results"]) for r in requests] == [
            ("0", "100"),
            ("100", "50"),
        ]
        assert [p.arxiv_id for p in response.papers] == [
            "2301.00001v1", "2301.00002v1", "2301.00003v1"
        ]
        assert response.total_results == 180
        assert response.items_per_page == 150

    @pytest.mark.asyncio
    async def test_no_second_page_when_total_is_small(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, text=_feed(_entry(), total=1))

        await _client(handler).search(SearchParams(query="all:attention", max_results=150))

        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_http_error_raises_search_error(self):
        client = _client(lambda request: httpx.Response(503, text="Service Unavailable"))

        with pytest.raises(SearchError) as exc_info:
            await client.search(SearchParams(query="all:attention"))

        assert "HTTP 503" in str(exc_info.value)
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_transport_error_raises_search_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SearchError) as exc_info:
            await _client(handler).search(SearchParams(query="all:attention"))

        assert str(exc_info.value).startswith("ArXiv search failed")
        assert isinstance(exc_info.value.original_error, httpx.ConnectError)


def test_bibtex_entry():
    paper = PaperRecord(
        arxiv_id="2301.00001v1",
        title="Attention Is All You Need",
        authors=["Ashish Vaswani", "Noam Shazeer"],
        year="2023",
        abstract_url="https://arxiv.org/abs/2301.00001v1",
        doi="10.1000/xyz123",
    )

    assert format_bibtex(paper) == (
        "@article{2301.00001v1,\n"
        "  title={Attention Is All You Need},\n"
        "  author={Vaswani and Shazeer},\n"
        "  journal={arXiv preprint arXiv:2301.00001v1},\n"
        "  year={2023},\n"
        "  url={https://arxiv.org/abs/2301.00001v1},\n"
        "  doi={10.1000/xyz123}\n"
        "}"
    )
