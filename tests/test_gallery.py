"""Tests for gallery search sessions."""

import pytest

from conftest import WAIT_SECONDS
from sunflower.errors import MissingAccessKeyError
from sunflower.retrieval.gallery import GallerySearch, UnsplashRepository
from sunflower.retrieval.page_cache import PagingConfig
from sunflower.retrieval.paging import LoadState
from sunflower.retrieval.unsplash_client import UnsplashSearchResponse


class FakeService:
    def __init__(self, access_key="key"):
        self.access_key = access_key
        self.calls = []

    def has_valid_access_key(self):
        return bool(self.access_key)

    def search_photos(self, query, page, per_page):
        self.calls.append((query, page, per_page))
        return UnsplashSearchResponse.model_validate(
            {
                "total_pages": 2,
                "results": [
                    {
                        "id": f"{query}-{page}-{i}",
                        "urls": {"small": f"https://images.example/{query}/{page}/{i}.jpg"},
                        "user": {"name": "Ada", "username": "ada"},
                    }
                    for i in range(per_page)
                ],
            }
        )


def _loaded(cache):
    return cache.snapshots.wait_for(lambda s: s.load_state == LoadState.LOADED, timeout=WAIT_SECONDS)


def test_search_starts_loading_first_page():
    service = FakeService()
    gallery = GallerySearch(UnsplashRepository(service, page_size=3))
    try:
        cache = gallery.search("fern")
        snapshot = _loaded(cache)
        assert [photo.id for photo in snapshot.items] == ["fern-1-0", "fern-1-1", "fern-1-2"]
        assert service.calls == [("fern", 1, 3)]
    finally:
        gallery.close()


def test_same_query_reuses_session():
    gallery = GallerySearch(UnsplashRepository(FakeService(), page_size=2))
    try:
        first = gallery.search("fern")
        _loaded(first)
        assert gallery.search("fern") is first
    finally:
        gallery.close()


def test_new_query_closes_previous_session():
    """Test that only the latest query's session stays open."""
    gallery = GallerySearch(UnsplashRepository(FakeService(), page_size=2))
    try:
        first = gallery.search("fern")
        second = gallery.search("moss")
        assert second is not first
        assert first.closed is True
        assert gallery.current_query == "moss"
        assert [photo.id for photo in _loaded(second).items] == ["moss-1-0", "moss-1-1"]
    finally:
        gallery.close()
    assert second.closed is True


def test_search_without_access_key_fails_fast():
    gallery = GallerySearch(UnsplashRepository(FakeService(access_key=None)))
    with pytest.raises(MissingAccessKeyError):
        gallery.search("fern")
    assert gallery.current_result is None


def test_repository_builds_cache_with_page_size():
    repository = UnsplashRepository(FakeService(), page_size=3)
    cache = repository.get_search_result_stream("fern")
    try:
        assert cache.config == PagingConfig(page_size=3)
        assert cache.snapshot.load_state == LoadState.IDLE
    finally:
        cache.close()
