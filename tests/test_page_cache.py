"""Tests for PageCache session behavior."""

import logging
import threading
from dataclasses import dataclass

import pytest

from conftest import WAIT_SECONDS
from sunflower.errors import MissingAccessKeyError, RemoteLoadError
from sunflower.retrieval.page_cache import PageCache, PagingConfig
from sunflower.retrieval.paging import LoadFailed, LoadState, PageLoaded, PagingSource, UnsplashPagingSource


@dataclass(frozen=True)
class Item:
    id: str


class FakeSource(PagingSource):
    """Serves `pages` (page number -> item ids) with optional failures and gating."""

    def __init__(self, pages, fail_once=(), gate=None, raise_error=None):
        self.pages = pages
        self.fail_once = set(fail_once)
        self.gate = gate
        self.raise_error = raise_error
        self.entered = threading.Event()
        self.requested = []

    def load(self, params):
        page = params.key or 1
        self.requested.append(params.key)
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(WAIT_SECONDS)
        if self.raise_error is not None:
            raise self.raise_error
        if page in self.fail_once:
            self.fail_once.discard(page)
            return LoadFailed(error=RemoteLoadError(f"page {page} failed", status_code=503))
        return PageLoaded(
            data=tuple(Item(item_id) for item_id in self.pages[page]),
            prev_key=None if page == 1 else page - 1,
            next_key=None if page >= len(self.pages) else page + 1,
        )

    def get_refresh_key(self, state):
        if state.anchor_position is None:
            return None
        closest = state.closest_page_to_position(state.anchor_position)
        return closest.prev_key if closest is not None else None


THREE_PAGES = {1: ["a", "b"], 2: ["c", "d"], 3: ["e", "f"]}


class SourceFactory:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.sources = []

    def __call__(self):
        source = FakeSource(THREE_PAGES, **self.kwargs)
        self.sources.append(source)
        return source


@pytest.fixture
def factory():
    return SourceFactory()


@pytest.fixture
def cache(factory):
    page_cache = PageCache(factory, PagingConfig(page_size=2), name="test-cache")
    try:
        yield page_cache
    finally:
        page_cache.close()


def _ids(snapshot):
    return [item.id for item in snapshot.items]


def test_starts_idle_and_empty(cache):
    snapshot = cache.snapshot
    assert snapshot.load_state == LoadState.IDLE
    assert snapshot.items == ()
    assert snapshot.end_of_pagination is False


def test_loads_pages_in_order_until_end(cache, factory):
    """Test appending pages until next_key runs out."""
    for _ in range(3):
        assert isinstance(cache.load_next().result(WAIT_SECONDS), PageLoaded)

    snapshot = cache.snapshot
    assert _ids(snapshot) == ["a", "b", "c", "d", "e", "f"]
    assert snapshot.load_state == LoadState.LOADED
    assert snapshot.next_key is None
    assert snapshot.end_of_pagination is True
    assert cache.page_keys() == [None, 2, 3]

    assert cache.load_next().result(WAIT_SECONDS) is None
    assert factory.sources[0].requested == [None, 2, 3]


def test_item_count_never_shrinks_within_a_session(cache, recorder):
    cache.snapshots.subscribe(recorder)
    for _ in range(3):
        cache.load_next().result(WAIT_SECONDS)
    counts = [len(snapshot.items) for snapshot in recorder.values]
    assert counts == sorted(counts)
    assert counts[-1] == 6


def test_failure_keeps_loaded_pages_and_retry_recovers():
    """Test that a failed page leaves earlier pages and retry() loads it."""
    factory = SourceFactory(fail_once={2})
    cache = PageCache(factory, name="failing")
    try:
        cache.load_next().result(WAIT_SECONDS)
        failed = cache.load_next().result(WAIT_SECONDS)
        assert isinstance(failed, LoadFailed)

        snapshot = cache.snapshot
        assert snapshot.load_state == LoadState.FAILED
        assert isinstance(snapshot.error, RemoteLoadError)
        assert _ids(snapshot) == ["a", "b"]

        assert isinstance(cache.retry().result(WAIT_SECONDS), PageLoaded)
        snapshot = cache.snapshot
        assert snapshot.load_state == LoadState.LOADED
        assert snapshot.error is None
        assert _ids(snapshot) == ["a", "b", "c", "d"]
    finally:
        cache.close()


def test_retry_without_failure_is_noop(cache):
    cache.load_next().result(WAIT_SECONDS)
    assert cache.retry().result(WAIT_SECONDS) is None
    assert cache.page_keys() == [None]


def test_concurrent_requests_share_one_load():
    """Test that asking again while a page is loading returns the in-flight future."""
    gate = threading.Event()
    factory = SourceFactory(gate=gate)
    cache = PageCache(factory, name="gated")
    try:
        first = cache.load_next()
        second = cache.load_next()
        assert first is second
        assert cache.snapshot.load_state == LoadState.LOADING
        gate.set()
        first.result(WAIT_SECONDS)
        assert factory.sources[0].requested == [None]
    finally:
        gate.set()
        cache.close()


def test_duplicate_items_across_pages_are_dropped():
    pages = {1: ["a", "b"], 2: ["b", "c"]}
    cache = PageCache(lambda: FakeSource(pages), name="dupes")
    try:
        cache.load_next().result(WAIT_SECONDS)
        cache.load_next().result(WAIT_SECONDS)
        assert _ids(cache.snapshot) == ["a", "b", "c"]
    finally:
        cache.close()


def test_refresh_restarts_before_anchor_page(cache, factory):
    """Test that refresh reloads from the page before the anchor and load_previous fills in."""
    for _ in range(3):
        cache.load_next().result(WAIT_SECONDS)

    cache.refresh(anchor_position=4).result(WAIT_SECONDS)
    assert len(factory.sources) == 2
    assert cache.page_keys() == [2]
    assert _ids(cache.snapshot) == ["c", "d"]

    cache.load_previous().result(WAIT_SECONDS)
    assert cache.page_keys() == [1, 2]
    assert _ids(cache.snapshot) == ["a", "b", "c", "d"]
    assert cache.snapshot.prev_key is None
    assert cache.load_previous().result(WAIT_SECONDS) is None


def test_refresh_without_anchor_starts_over(cache):
    cache.load_next().result(WAIT_SECONDS)
    cache.load_next().result(WAIT_SECONDS)
    cache.refresh().result(WAIT_SECONDS)
    assert cache.page_keys() == [None]
    assert _ids(cache.snapshot) == ["a", "b"]


def test_close_discards_in_flight_result():
    """Test that a page finishing after close() is not applied."""
    gate = threading.Event()
    factory = SourceFactory(gate=gate)
    cache = PageCache(factory, name="closing")
    future = cache.load_next()
    assert factory.sources[0].entered.wait(WAIT_SECONDS)

    cache.close()
    gate.set()
    assert isinstance(future.result(WAIT_SECONDS), PageLoaded)

    assert cache.closed is True
    assert cache.snapshot.items == ()
    with pytest.raises(RuntimeError):
        cache.load_next()


def test_source_exception_propagates_and_resets_state():
    factory = SourceFactory(raise_error=MissingAccessKeyError("no key"))
    cache = PageCache(factory, name="no-key")
    try:
        with pytest.raises(MissingAccessKeyError):
            cache.load_next().result(WAIT_SECONDS)
        assert cache.snapshot.load_state == LoadState.IDLE
    finally:
        cache.close()


class BrokenService:
    def search_photos(self, query, page, per_page):
        raise RemoteLoadError("service unavailable", status_code=503)


def test_failed_page_logged_once(caplog):
    """Test that one failed page load produces a single warning."""
    cache = PageCache(lambda: UnsplashPagingSource(BrokenService(), "fern"), name="broken")
    try:
        with caplog.at_level(logging.WARNING):
            result = cache.load_next().result(WAIT_SECONDS)
        assert isinstance(result, LoadFailed)
        warnings = [record for record in caplog.records if record.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "broken" in warnings[0].getMessage()
    finally:
        cache.close()
