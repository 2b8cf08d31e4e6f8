"""Accumulates the pages of one search session into a single live snapshot stream."""

from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Tuple, TypeVar

from sunflower.live.observable import CancellationToken, LiveData
from sunflower.retrieval.paging import (
    LoadFailed,
    LoadParams,
    LoadResult,
    LoadState,
    PageLoaded,
    PagingSource,
    PagingState,
)
from sunflower.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

APPEND = "APPEND"
PREPEND = "PREPEND"


@dataclass(frozen=True)
class PagingConfig:
    page_size: int = 25


@dataclass(frozen=True)
class PagingSnapshot(Generic[T]):
    """What a consumer sees: loaded items plus the state of the latest request."""

    items: Tuple[T, ...]
    load_state: LoadState
    error: Optional[BaseException]
    prev_key: Optional[int]
    next_key: Optional[int]
    page_count: int

    @property
    def end_of_pagination(self) -> bool:
        return self.page_count > 0 and self.next_key is None


def _default_item_key(item: Any) -> Any:
    return getattr(item, "id", item)


def _completed(value: Any) -> Future:
    future: Future = Future()
    future.set_result(value)
    return future


class PageCache(Generic[T]):
    """
    In-memory page history for one search session.

    At most one page request is outstanding; asking for more while a request is
    running returns the in-flight future. A failed request leaves the loaded
    pages in place and surfaces as load_state FAILED until retry(). refresh()
    restarts from the page before the one containing the anchor position.
    close() ends the session and discards any in-flight result.
    """

    def __init__(
        self,
        source_factory: Callable[[], PagingSource[T]],
        config: Optional[PagingConfig] = None,
        *,
        executor: Optional[Executor] = None,
        item_key: Callable[[T], Any] = _default_item_key,
        name: str = "page-cache",
    ):
        self.name = name
        self.config = config or PagingConfig()
        self._source_factory = source_factory
        self._source = source_factory()
        self._item_key = item_key
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="sunflower-paging")
        self._pages: List[Tuple[Optional[int], PageLoaded]] = []
        self._initial_key: Optional[int] = None
        self._state = LoadState.IDLE
        self._error: Optional[BaseException] = None
        self._failed_request: Optional[Tuple[str, Optional[int]]] = None
        self._inflight: Optional[Future] = None
        self._generation = 0
        self._token = CancellationToken()
        self.snapshots: LiveData[PagingSnapshot[T]] = LiveData(self._snapshot(), name=name)
        # One lock for state and delivery: subscribers may call back into the cache
        self._lock = self.snapshots.lock

    # Views

    def _items(self) -> Tuple[T, ...]:
        seen = set()
        items: List[T] = []
        for _, page in self._pages:
            for item in page.data:
                key = self._item_key(item)
                if key in seen:
                    continue
                seen.add(key)
                items.append(item)
        return tuple(items)

    def _snapshot(self) -> PagingSnapshot[T]:
        return PagingSnapshot(
            items=self._items(),
            load_state=self._state,
            error=self._error,
            prev_key=self._pages[0][1].prev_key if self._pages else None,
            next_key=self._pages[-1][1].next_key if self._pages else None,
            page_count=len(self._pages),
        )

    def _publish(self) -> None:
        self.snapshots.post(self._snapshot())

    @property
    def snapshot(self) -> PagingSnapshot[T]:
        with self._lock:
            return self.snapshots.value

    @property
    def closed(self) -> bool:
        return self._token.cancelled

    def page_keys(self) -> List[Optional[int]]:
        """Keys the loaded pages were requested with, in cursor order."""
        with self._lock:
            return [key for key, _ in self._pages]

    # Requests

    def load_next(self) -> "Future[Optional[LoadResult]]":
        """Load the page after the last loaded one (the initial page if none)."""
        with self._lock:
            self._check_open()
            if self._inflight is not None:
                return self._inflight
            if not self._pages:
                return self._start(APPEND, self._initial_key)
            next_key = self._pages[-1][1].next_key
            if next_key is None:
                return _completed(None)
            return self._start(APPEND, next_key)

    def load_previous(self) -> "Future[Optional[LoadResult]]":
        """Load the page before the first loaded one."""
        with self._lock:
            self._check_open()
            if self._inflight is not None:
                return self._inflight
            if not self._pages:
                return self._start(APPEND, self._initial_key)
            prev_key = self._pages[0][1].prev_key
            if prev_key is None:
                return _completed(None)
            return self._start(PREPEND, prev_key)

    def retry(self) -> "Future[Optional[LoadResult]]":
        """Re-request the page whose load failed; no-op unless the state is FAILED."""
        with self._lock:
            self._check_open()
            if self._inflight is not None:
                return self._inflight
            if self._state != LoadState.FAILED or self._failed_request is None:
                return _completed(None)
            direction, key = self._failed_request
            return self._start(direction, key)

    def refresh(self, anchor_position: Optional[int] = None) -> "Future[Optional[LoadResult]]":
        """
        Drop loaded pages and reload with a fresh paging source.

        The reload starts at the source's refresh key for anchor_position, or
        at the first page when there is no anchor.
        """
        with self._lock:
            self._check_open()
            state = PagingState(pages=tuple(page for _, page in self._pages), anchor_position=anchor_position)
            refresh_key = self._source.get_refresh_key(state)
            logger.info(f"{self.name}: refreshing from key {refresh_key} (anchor={anchor_position})")
            self._generation += 1
            if self._inflight is not None:
                self._inflight.cancel()
                self._inflight = None
            self._source = self._source_factory()
            self._pages = []
            self._initial_key = refresh_key
            self._failed_request = None
            self._error = None
            self._state = LoadState.IDLE
            return self._start(APPEND, refresh_key)

    def close(self) -> None:
        with self._lock:
            if self._token.cancelled:
                return
            self._token.cancel()
            self._generation += 1
            if self._inflight is not None:
                self._inflight.cancel()
                self._inflight = None
        self.snapshots.close()
        if self._owns_executor:
            self._executor.shutdown(wait=False)
        logger.debug(f"{self.name}: closed")

    def _check_open(self) -> None:
        if self._token.cancelled:
            raise RuntimeError(f"{self.name} is closed")

    def _start(self, direction: str, key: Optional[int]) -> Future:
        # Caller holds the lock
        generation = self._generation
        source = self._source
        params = LoadParams(key=key, load_size=self.config.page_size)
        self._state = LoadState.LOADING
        self._error = None
        self._publish()
        logger.debug(f"{self.name}: loading key={key} ({direction})")
        # _run needs the lock to publish, so it cannot clear _inflight before we set it
        self._inflight = self._executor.submit(self._run, source, params, direction, generation)
        return self._inflight

    def _run(self, source: PagingSource[T], params: LoadParams, direction: str, generation: int) -> Optional[LoadResult]:
        if self._token.cancelled:
            return None
        try:
            result = source.load(params)
        except Exception:
            with self._lock:
                if generation == self._generation:
                    self._inflight = None
                    self._state = LoadState.IDLE
                    self._publish()
            raise

        with self._lock:
            if self._token.cancelled or generation != self._generation:
                logger.debug(f"{self.name}: discarding stale result for key={params.key}")
                return result
            self._inflight = None
            if isinstance(result, PageLoaded):
                entry = (params.key, result)
                if direction == PREPEND:
                    self._pages.insert(0, entry)
                else:
                    self._pages.append(entry)
                self._state = LoadState.LOADED
                self._error = None
                self._failed_request = None
            elif isinstance(result, LoadFailed):
                self._state = LoadState.FAILED
                self._error = result.error
                self._failed_request = (direction, params.key)
                logger.warning(f"{self.name}: page load failed for key={params.key}: {result.error}")
            self._publish()
        return result
