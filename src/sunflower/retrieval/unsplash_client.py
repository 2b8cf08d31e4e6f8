"""HTTP client for the Unsplash photo search endpoint."""

from typing import Dict, List, Optional
from urllib.parse import urljoin

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sunflower.errors import MissingAccessKeyError, RemoteLoadError
from sunflower.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.unsplash.com/"
SEARCH_PHOTOS_PATH = "search/photos"
ATTRIBUTION_UTM = "utm_source=sunflower&utm_medium=referral"


class UnsplashUser(BaseModel):
    """Photo owner as returned by the API."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    username: str

    @property
    def attribution_url(self) -> str:
        """Profile link crediting the photographer."""
        return f"https://unsplash.com/{self.username}?{ATTRIBUTION_UTM}"


class UnsplashPhotoUrls(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    raw: Optional[str] = None
    full: Optional[str] = None
    regular: Optional[str] = None
    small: Optional[str] = None
    thumb: Optional[str] = None


class UnsplashPhoto(BaseModel):
    """One search result. Never persisted locally."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    urls: UnsplashPhotoUrls
    user: UnsplashUser

    @property
    def image_url(self) -> Optional[str]:
        return self.urls.small or self.urls.regular or self.urls.full or self.urls.raw


class UnsplashSearchResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: List[UnsplashPhoto] = Field(default_factory=list)
    total_pages: int = 0


class UnsplashService:
    """Thin wrapper over GET search/photos."""

    def __init__(
        self,
        access_key: Optional[str],
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 20,
        session: Optional[requests.Session] = None,
    ):
        self.access_key = access_key
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: Dict) -> "UnsplashService":
        unsplash = config.get("unsplash", {})
        return cls(
            unsplash.get("access_key"),
            base_url=unsplash.get("base_url", DEFAULT_BASE_URL),
            timeout=unsplash.get("timeout_seconds", 20),
        )

    def has_valid_access_key(self) -> bool:
        return bool(self.access_key) and self.access_key != "null"

    def search_photos(self, query: str, page: int, per_page: int) -> UnsplashSearchResponse:
        """
        Fetch one page of search results.

        Raises:
            MissingAccessKeyError: If no access key is configured
            RemoteLoadError: On network failure, non-2xx status or undecodable body
        """
        if not self.has_valid_access_key():
            raise MissingAccessKeyError("Unsplash access key is not configured")

        url = urljoin(self.base_url, SEARCH_PHOTOS_PATH)
        params = {
            "query": query,
            "page": page,
            "per_page": per_page,
            "client_id": self.access_key,
        }
        logger.info(f"GET {url} query={query!r} page={page} per_page={per_page}")
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            status_code = None
            if getattr(e, "response", None) is not None:
                status_code = e.response.status_code
            raise RemoteLoadError(f"Failed to search photos for {query!r}: {e}", status_code=status_code) from e

        try:
            return UnsplashSearchResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RemoteLoadError(
                f"Failed to decode search response for {query!r}: {e}",
                status_code=response.status_code,
            ) from e
