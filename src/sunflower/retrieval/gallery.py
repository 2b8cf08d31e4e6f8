"""Photo gallery search sessions."""

import threading
from concurrent.futures import Executor
from typing import Optional

from sunflower.errors import MissingAccessKeyError
from sunflower.retrieval.page_cache import PageCache, PagingConfig
from sunflower.retrieval.paging import UnsplashPagingSource
from sunflower.retrieval.unsplash_client import UnsplashPhoto, UnsplashService
from sunflower.utils.logging import get_logger

logger = get_logger(__name__)

NETWORK_PAGE_SIZE = 25


class UnsplashRepository:
    """Builds page caches for photo searches."""

    def __init__(
        self,
        service: UnsplashService,
        *,
        executor: Optional[Executor] = None,
        page_size: int = NETWORK_PAGE_SIZE,
    ):
        self.service = service
        self.executor = executor
        self.page_size = page_size

    def get_search_result_stream(self, query: str) -> PageCache[UnsplashPhoto]:
        """A new, empty page cache for query. Nothing is loaded until asked."""
        return PageCache(
            lambda: UnsplashPagingSource(self.service, query),
            PagingConfig(page_size=self.page_size),
            executor=self.executor,
            name=f"gallery({query!r})",
        )


class GallerySearch:
    """
    Keeps exactly one search session alive.

    Searching the current query again returns the same cache; a new query
    closes the previous session (abandoning its in-flight load) and starts a
    fresh one with the first page already requested.
    """

    def __init__(self, repository: UnsplashRepository):
        self.repository = repository
        self._lock = threading.Lock()
        self.current_query: Optional[str] = None
        self.current_result: Optional[PageCache[UnsplashPhoto]] = None

    def search(self, query: str) -> PageCache[UnsplashPhoto]:
        """
        Start (or reuse) the session for query.

        Raises:
            MissingAccessKeyError: If the service has no access key configured
        """
        if not self.repository.service.has_valid_access_key():
            raise MissingAccessKeyError("Unsplash access key is not configured")

        with self._lock:
            current = self.current_result
            if current is not None and query == self.current_query and not current.closed:
                return current

            if current is not None:
                logger.info(f"Discarding gallery session for {self.current_query!r}")
                current.close()

            result = self.repository.get_search_result_stream(query)
            self.current_query = query
            self.current_result = result
            result.load_next()
            logger.info(f"Started gallery session for {query!r}")
            return result

    def close(self) -> None:
        with self._lock:
            if self.current_result is not None:
                self.current_result.close()
            self.current_result = None
            self.current_query = None
