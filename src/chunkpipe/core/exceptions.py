"""
Exception classes for chunkpipe.

Transfer errors carry an ``ErrorKind`` so that a raised error can be folded
into a failed ``TransferOutcome`` without losing its classification.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Classification of a failed chunk transfer."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    HTTP = "http"
    APPLICATION = "application"


class ChunkPipeError(Exception):
    """Base exception for all chunkpipe errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class TransferError(ChunkPipeError):
    """Base class for errors raised while transferring a single request."""

    kind: ErrorKind = ErrorKind.NETWORK
    status_code: Optional[int] = None


class NetworkError(TransferError):
    """Raised when the connection or name resolution fails."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        details = {"url": url} if url else {}
        super().__init__(message, details)
        self.url = url


class TransferTimeoutError(TransferError):
    """Raised when a request does not complete before its deadline."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, timeout_ms: int, url: Optional[str] = None) -> None:
        details = {"timeout_ms": timeout_ms}
        if url:
            details["url"] = url
        super().__init__(f"Request timed out after {timeout_ms}ms", details)
        self.timeout_ms = timeout_ms
        self.url = url


class HttpError(TransferError):
    """Raised when the remote service answers with a non-2xx status."""

    kind = ErrorKind.HTTP

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"HTTP {status_code}: {message}", {"status_code": status_code})
        self.status_code = status_code


class ApplicationError(TransferError):
    """Raised when a 2xx response reports failure in its payload."""

    kind = ErrorKind.APPLICATION

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidConfigError(ChunkPipeError):
    """Raised for invalid chunk sizes, concurrency or other job settings.

    Never retried.
    """

    def __init__(self, field: str, value: Any, message: str) -> None:
        details = {"field": field, "value": value}
        super().__init__(f"Invalid configuration for {field}: {message}", details)
        self.field = field
        self.value = value
