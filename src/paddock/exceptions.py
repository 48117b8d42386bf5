"""Custom exceptions for the paddock data pipeline."""

from __future__ import annotations


class PaddockError(Exception):
    """Base exception for all paddock errors."""


class NetworkError(PaddockError):
    """Raised when an upstream provider cannot be reached at all."""


class RequestTimeoutError(NetworkError):
    """Raised when a single request exceeds its timeout."""


class RateLimitError(PaddockError):
    """Raised when the provider keeps answering 429 after all retries."""

    def __init__(self, retry_after: float | None = None, message: str = "") -> None:
        self.retry_after = retry_after
        self.message = message
        detail = f" (retry after {retry_after:g}s)" if retry_after is not None else ""
        super().__init__(f"HTTP 429: rate limited{detail}")


class UpstreamError(PaddockError):
    """Raised when the provider returns a non-success status other than 429."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"HTTP {status_code}: {message}")


class ResponseValidationError(PaddockError):
    """Raised when response data fails model validation."""


class EndpointError(PaddockError):
    """Raised when a schedule, standings or results lookup fails.

    The UI-facing collaborator only needs to know which endpoint is unavailable;
    the underlying transport error is kept on ``cause``.
    """

    def __init__(self, endpoint: str, cause: Exception) -> None:
        self.endpoint = endpoint
        self.cause = cause
        super().__init__(f"{endpoint} unavailable: {cause}")
