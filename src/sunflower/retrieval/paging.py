"""Page-at-a-time loading primitives and the Unsplash paging source."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, Tuple, TypeVar, Union

from sunflower.errors import MissingAccessKeyError
from sunflower.retrieval.unsplash_client import UnsplashPhoto, UnsplashService

T = TypeVar("T")

STARTING_PAGE_INDEX = 1


class LoadState(str, Enum):
    """State of the most recent page request of a session."""

    IDLE = "IDLE"
    LOADING = "LOADING"
    LOADED = "LOADED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class LoadParams:
    key: Optional[int]
    load_size: int


@dataclass(frozen=True)
class PageLoaded(Generic[T]):
    data: Tuple[T, ...]
    prev_key: Optional[int]
    next_key: Optional[int]


@dataclass(frozen=True)
class LoadFailed:
    error: BaseException


LoadResult = Union[PageLoaded, LoadFailed]


@dataclass(frozen=True)
class PagingState(Generic[T]):
    """Pages loaded so far plus the position the consumer last looked at."""

    pages: Tuple[PageLoaded, ...]
    anchor_position: Optional[int]

    def closest_page_to_position(self, position: int) -> Optional[PageLoaded]:
        """Page containing position; positions past either end clamp to the first/last page."""
        if not self.pages:
            return None
        if position < 0:
            return self.pages[0]
        offset = 0
        for page in self.pages:
            offset += len(page.data)
            if position < offset:
                return page
        return self.pages[-1]


class PagingSource(ABC, Generic[T]):
    """Loads one page per call, keyed by an integer cursor."""

    @abstractmethod
    def load(self, params: LoadParams) -> LoadResult:
        pass

    @abstractmethod
    def get_refresh_key(self, state: PagingState) -> Optional[int]:
        pass


class UnsplashPagingSource(PagingSource[UnsplashPhoto]):
    """Pages through search/photos results for one query."""

    def __init__(self, service: UnsplashService, query: str):
        self.service = service
        self.query = query

    def load(self, params: LoadParams) -> LoadResult:
        page = params.key if params.key is not None else STARTING_PAGE_INDEX
        try:
            response = self.service.search_photos(self.query, page, params.load_size)
        except MissingAccessKeyError:
            raise
        except Exception as e:
            return LoadFailed(error=e)

        return PageLoaded(
            data=tuple(response.results),
            prev_key=None if page == STARTING_PAGE_INDEX else page - 1,
            next_key=None if page >= response.total_pages else page + 1,
        )

    def get_refresh_key(self, state: PagingState) -> Optional[int]:
        if state.anchor_position is None:
            return None
        closest = state.closest_page_to_position(state.anchor_position)
        return closest.prev_key if closest is not None else None
