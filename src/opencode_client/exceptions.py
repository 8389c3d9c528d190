"""OpenCode Client Exceptions.

Custom exceptions for OpenCode client operations.

The event stream ends abnormally with exactly one of the ``StreamError``
types. Cancellation is not an error and never raises.
"""

from __future__ import annotations

from enum import Enum


class OpenCodeClientError(Exception):
    """Base exception for OpenCode client errors."""

    def __init__(self, message: str, code: str | None = None, details: dict | None = None):
        """Initialize the exception.

        Args:
            message: Error message.
            code: Optional error code.
            details: Optional additional details.
        """
        super().__init__(message)
        self.message = message
        self.code = code or "CLIENT_ERROR"
        self.details = details or {}


class ConnectionErrorKind(str, Enum):
    """Why a connection could not be used."""

    FAILED = "CONNECTION_FAILED"  # DNS, refused, TLS, ...
    TIMEOUT = "CONNECT_TIMEOUT"  # never connected within the timeout
    LOST = "CONNECTION_LOST"  # was streaming, then the transport failed


class ConnectionError(OpenCodeClientError):
    """Raised when the server cannot be, or can no longer be, reached."""

    def __init__(
        self,
        message: str = "Failed to connect to server",
        kind: ConnectionErrorKind = ConnectionErrorKind.FAILED,
        **kwargs,
    ):
        """Initialize the exception.

        Args:
            message: Error message.
            kind: Which connection failure occurred.
            **kwargs: Additional arguments for OpenCodeClientError.
        """
        super().__init__(message, code=kind.value, **kwargs)
        self.kind = kind

    @property
    def is_timeout(self) -> bool:
        return self.kind is ConnectionErrorKind.TIMEOUT


class ApiError(OpenCodeClientError):
    """Raised when the server responds with a non-success status."""

    def __init__(
        self,
        message: str = "Server error",
        status_code: int | None = None,
        body: str | None = None,
        **kwargs,
    ):
        """Initialize the exception.

        Args:
            message: Error message.
            status_code: HTTP status code.
            body: Response body returned by the server.
            **kwargs: Additional arguments for OpenCodeClientError.
        """
        details = kwargs.pop("details", {})
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, code="API_ERROR", details=details, **kwargs)
        self.status_code = status_code
        self.body = body


StreamError = ConnectionError | ApiError
