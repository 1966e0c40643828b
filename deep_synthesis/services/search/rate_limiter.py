"""Global throttle in front of the arXiv client."""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence, Tuple

from deep_synthesis.schemas.paper import SearchParams, SearchResponse
from deep_synthesis.utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_MIN_INTERVAL_SECONDS = 3.0


class SearchClient(Protocol):
    async def search(
        self,
        params: SearchParams,
        throttle: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> SearchResponse:
        ...


@dataclass
class BatchSearchResult:
    results: List[SearchResponse] = field(default_factory=list)
    errors: List[Tuple[SearchParams, Exception]] = field(default_factory=list)


class SearchRateLimiter:
    """FIFO queue of searches, dispatched one at a time.

    Consecutive requests are at least ``min_interval_seconds`` apart no
    matter how many callers enqueue concurrently. The client receives the
    limiter's slot as its ``throttle`` so extra pages of one search wait too. The drain task is started
    on the first enqueue and exits once the queue is empty.
    """

    def __init__(
        self,
        client: SearchClient,
        min_interval_seconds: float = DEFAULT_MIN_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.min_interval_seconds = min_interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._queue: "asyncio.Queue[Tuple[SearchParams, asyncio.Future]]" = asyncio.Queue()
        self._last_dispatch: Optional[float] = None
        self._drain_task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def search(self, params: SearchParams) -> SearchResponse:
        """Enqueue a search and wait until it has been issued and answered."""
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((params, future))
        LOGGER.debug(f"Queued arXiv search ({self.pending} pending)", extra={"query": params.query})

        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.create_task(self._drain())

        return await future

    async def search_batch(self, params_list: Sequence[SearchParams]) -> BatchSearchResult:
        """Run searches one after another; failures are collected, not raised."""
        batch = BatchSearchResult()
        for params in params_list:
            try:
                batch.results.append(await self.search(params))
            except Exception as e:
                LOGGER.warning(
                    f"Batch search failed for query: {params.query}",
                    extra={"error": str(e)},
                )
                batch.errors.append((params, e))
        return batch

    async def _drain(self) -> None:
        while not self._queue.empty():
            params, future = self._queue.get_nowait()
            if future.cancelled():
                continue

            await self._wait_for_slot()
            try:
                response = await self.client.search(params, throttle=self._wait_for_slot)
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(response)

    async def _wait_for_slot(self) -> None:
        """Sleep until the interval since the previous request has passed, then claim it."""
        if self._last_dispatch is not None:
            wait = max(0.0, self.min_interval_seconds - (self._clock() - self._last_dispatch))
            if wait > 0:
                await self._sleep(wait)
        self._last_dispatch = self._clock()
