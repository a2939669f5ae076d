"""Failure classes surfaced by the gateway, controllers and aggregator."""

from __future__ import annotations

from typing import Optional


class ClientError(Exception):
    """Base error for every recoverable client failure.

    ``str(exc)`` is the human-readable message shown to the operator.
    """


class UnauthorizedError(ClientError):
    """Raised when the service rejects the session credential (HTTP 401)."""

    def __init__(self, message: str = "Unauthorized access") -> None:
        super().__init__(message)


class ValidationError(ClientError):
    """Raised when a required field is missing before any request is sent."""


class RequestFailedError(ClientError):
    """Raised for non-2xx replies that still carried a JSON body."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class TransportError(ClientError):
    """Raised when the exchange fails or the reply cannot be parsed."""


class ResponseFormatError(TransportError):
    """Raised when a parsed reply does not match the expected entity shape."""


__all__ = [
    "ClientError",
    "UnauthorizedError",
    "ValidationError",
    "RequestFailedError",
    "TransportError",
    "ResponseFormatError",
]
