"""Exceptions raised by the table memory services."""

from typing import Optional


class TableMemoryError(Exception):
    """Base class for all table memory errors."""


class ConfigError(TableMemoryError):
    """Missing or invalid configuration, detected before any network attempt."""


class InvalidArgumentError(TableMemoryError, ValueError):
    """Malformed call input."""


class NetworkError(TableMemoryError):
    """Transport level failure talking to a remote service."""


class ApiError(TableMemoryError):
    """Non-success response from the embedding API, or exhausted retries."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body
        self.cause = cause


class FormatError(TableMemoryError):
    """Response body does not have the expected shape."""


class DimensionMismatchError(TableMemoryError, ValueError):
    """Two vectors that must share a dimension do not."""


class StorageError(TableMemoryError):
    """Durable store open, read or write failure."""


class NotInitializedError(TableMemoryError):
    """Operation attempted before the vector store finished initializing."""
