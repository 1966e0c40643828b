"""Tests for the arXiv search throttle."""

import asyncio

import httpx
import pytest

from deep_synthesis.core.exceptions import SearchError
from deep_synthesis.schemas.paper import SearchParams, SearchResponse
from deep_synthesis.services.search import ArxivClient, SearchRateLimiter


class FakeClock:
    """Manual clock whose sleep advances time instead of waiting."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class RecordingClient:
    def __init__(self, clock: FakeClock, failing=()):
        self.clock = clock
        self.failing = set(failing)
        self.calls = []

    async def search(self, params: SearchParams, throttle=None) -> SearchResponse:
        self.calls.append((params.query, self.clock.now))
        if params.query in self.failing:
            raise SearchError(f"ArXiv search failed: {params.query}")
        return SearchResponse(total_results=len(self.calls))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.mark.asyncio
async def test_concurrent_searches_are_spaced_and_fifo(clock):
    client = RecordingClient(clock)
    limiter = SearchRateLimiter(client, min_interval_seconds=3.0, clock=clock, sleep=clock.sleep)

    results = await asyncio.gather(
        limiter.search(SearchParams(query="a")),
        limiter.search(SearchParams(query="b")),
        limiter.search(SearchParams(query="c")),
    )

    assert client.calls == [("a", 0.0), ("b", 3.0), ("c", 6.0)]
    assert [r.total_results for r in results] == [1, 2, 3]
    assert limiter.pending == 0


@pytest.mark.asyncio
async def test_no_wait_when_interval_already_elapsed(clock):
    client = RecordingClient(clock)
    limiter = SearchRateLimiter(client, min_interval_seconds=3.0, clock=clock, sleep=clock.sleep)

    await limiter.search(SearchParams(query="a"))
    clock.now += 10
    await limiter.search(SearchParams(query="b"))

    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_partial_wait(clock):
    client = RecordingClient(clock)
    limiter = SearchRateLimiter(client, min_interval_seconds=3.0, clock=clock, sleep=clock.sleep)

    await limiter.search(SearchParams(query="a"))
    clock.now += 1
    await limiter.search(SearchParams(query="b"))

    assert clock.sleeps == [2.0]


@pytest.mark.asyncio
async def test_failure_reaches_only_its_caller(clock):
    client = RecordingClient(clock, failing={"bad"})
    limiter = SearchRateLimiter(client, min_interval_seconds=3.0, clock=clock, sleep=clock.sleep)

    results = await asyncio.gather(
        limiter.search(SearchParams(query="bad")),
        limiter.search(SearchParams(query="good")),
        return_exceptions=True,
    )

    assert isinstance(results[0], SearchError)
    assert isinstance(results[1], SearchResponse)
    # the failed request still counts towards the spacing
    assert client.calls[1] == ("good", 3.0)


@pytest.mark.asyncio
async def test_search_batch_collects_errors(clock):
    client = RecordingClient(clock, failing={"bad"})
    limiter = SearchRateLimiter(client, min_interval_seconds=3.0, clock=clock, sleep=clock.sleep)

    batch = await limiter.search_batch(
        [SearchParams(query="one"), SearchParams(query="bad"), SearchParams(query="two")]
    )

    assert len(batch.results) == 2
    assert [params.query for params, _ in batch.errors] == ["bad"]
    assert isinstance(batch.errors[0][1], SearchError)
    assert [query for query, _ in client.calls] == ["one", "bad", "two"]


LARGE_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom"
      xmlns:opensearch="http://a9.com/-/spec/opensearch/1.1/">
  <title>ArXiv Query</title>
  <id>http://arxiv.org/api/large</id>
  <opensearch:totalResults>500</opensearch:totalResults>
  <opensearch:startIndex>0</opensearch:startIndex>
  <opensearch:itemsPerPage>0</opensearch:itemsPerPage>
</feed>
"""


@pytest.mark.asyncio
async def test_second_page_of_a_search_waits_for_its_own_slot(clock):
    requests = []

    def handler(request):
        requests.append((request.url.params["start"], clock.now))
        return httpx.Response(200, text=LARGE_FEED)

    client = ArxivClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    limiter = SearchRateLimiter(client, min_interval_seconds=3.0, clock=clock, sleep=clock.sleep)

    await asyncio.gather(
        limiter.search(SearchParams(query="all:a")),
        limiter.search(SearchParams(query="all:b")),
    )

    assert requests == [("0", 0.0), ("100", 3.0), ("0", 6.0), ("100", 9.0)]
    times = [at for _, at in requests]
    assert all(later - earlier >= 3.0 for earlier, later in zip(times, times[1:]))
