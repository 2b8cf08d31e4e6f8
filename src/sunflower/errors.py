"""Domain errors raised across the store, the photo client and seeding."""

from typing import Optional


class SunflowerError(Exception):
    """Base class for all sunflower errors."""


class ConstraintViolation(SunflowerError):
    """A write referenced a row that does not exist (foreign key)."""

    def __init__(self, message: str, *, table: Optional[str] = None, key: Optional[str] = None):
        super().__init__(message)
        self.table = table
        self.key = key


class RemoteLoadError(SunflowerError):
    """A remote page could not be fetched or decoded."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MissingAccessKeyError(SunflowerError):
    """The photo service was called without a usable access key."""


class SeedFailure(SunflowerError):
    """The bundled seed file could not be loaded into the store."""
