"""Exceptions raised by the comparables pipeline."""


class TasadorError(Exception):
    """Base class for all pipeline errors."""


class InvalidQueryError(TasadorError):
    """User input failed validation (HTTP 400)."""


class SearchUnavailableError(TasadorError):
    """The listings API kept failing after every retry attempt."""

    def __init__(self, message: str, last_error: Exception | None = None):
        super().__init__(message)
        self.last_error = last_error


class CacheError(TasadorError):
    """Cache read or write failed. Callers treat it as a miss."""
