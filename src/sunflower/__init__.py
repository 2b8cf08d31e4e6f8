"""Garden tracking with live local queries and paginated photo search."""

__version__ = "0.3.0"
