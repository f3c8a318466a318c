from __future__ import annotations
"""Exceptions raised by the storage clients and the layers above them."""
from typing import Optional


class StorageError(RuntimeError):
    """Base class for every error raised by this package."""


class TransportError(StorageError):
    """The remote store answered with a non-success status, or could not be reached."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text


class RetrievalError(TransportError):
    """Fetching an object body failed."""


class WriteError(TransportError):
    """Storing an object body failed."""


class ParseError(StorageError):
    """A protocol response entry could not be interpreted."""


class UnsupportedOperationError(StorageError):
    """The backend protocol has no equivalent for the requested operation."""


class AuthorizationError(StorageError):
    """The caller is not allowed to perform the request."""


class NotFoundError(StorageError):
    """No storage is configured under the requested identifier."""


class AggregationError(StorageError):
    """Statistics collection stopped because a listing call failed."""

    def __init__(self, prefix: str, cause: Exception):
        location = prefix or "/"
        super().__init__(f"Failed to list '{location}': {cause}")
        self.prefix = prefix
        self.cause = cause


class TraversalCancelledError(StorageError):
    """Raised when a statistics traversal is cancelled by the caller."""
