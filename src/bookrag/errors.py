"""
BookRAG error hierarchy.

Three families share the ``BookRAGError`` base:

- ``RetryableError``: the embedding service may succeed if asked again
  (HTTP 429/503/5xx, refused connections, timeouts)
- ``PermanentError``: the request or configuration has to change first
  (HTTP 400/401/403/404, invalid settings)
- domain errors from the store, retrieval and ingestion layers

Usage:
------
    from bookrag.errors import IngestionError

    try:
        report = await pipeline.run(book_dir)
    except IngestionError as e:
        logger.error(f"Ingestion failed at stage {e.stage}: {e}")
"""

from typing import Any


class BookRAGError(Exception):
    """
    Base exception for all BookRAG errors.

    Subclasses set ``default_message`` so they can be raised bare.

    Attributes:
        message: Human-readable error description
        details: Extra context, e.g. a status code or a file path
        original_error: The exception this one wraps, if any
    """

    default_message = "BookRAG error"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message or self.default_message
        self.details = dict(details or {})
        self.original_error = original_error
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.details:
            parts.append(f"Details: {self.details}")
        if self.original_error is not None:
            parts.append(f"Caused by: {type(self.original_error).__name__}: {self.original_error}")
        return " | ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "details": self.details,
            "original_error": str(self.original_error) if self.original_error else None,
        }


# Embedding service: worth retrying

class RetryableError(BookRAGError):
    """
    Failure that may go away on its own.

    Attributes:
        retry_after: Seconds the service asked us to wait, when it said so
    """

    default_message = "Transient failure"

    def __init__(
        self,
        message: str | None = None,
        retry_after: float | None = None,
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message, details, original_error)
        self.retry_after = retry_after


class RateLimitError(RetryableError):
    default_message = "API rate limit exceeded"


class ServiceUnavailableError(RetryableError):
    default_message = "Service temporarily unavailable"


class ConnectionError(RetryableError):
    default_message = "Failed to connect to service"


class TransientError(RetryableError):
    """Unclassified 5xx response."""

    default_message = "Server error"


class TimeoutError(RetryableError):
    """The request exceeded ``timeout`` seconds."""

    default_message = "Request timed out"

    def __init__(
        self,
        message: str | None = None,
        timeout: float | None = None,
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message, None, {**(details or {}), "timeout": timeout}, original_error)
        self.timeout = timeout


# Not worth retrying without a change

class PermanentError(BookRAGError):
    default_message = "Request failed permanently"


class AuthenticationError(PermanentError):
    default_message = "Authentication failed"


class InvalidRequestError(PermanentError):
    default_message = "Invalid request parameters"


class NotFoundError(PermanentError):
    default_message = "Resource not found"


class ConfigurationError(PermanentError):
    """Bad settings, unknown search mode, invalid weights or a tokenizer that cannot load."""

    default_message = "Configuration error"


# Domain errors

class EmbeddingError(BookRAGError):
    """The embedding service answered, but not with a usable vector."""

    default_message = "Invalid embedding response"


class StoreError(BookRAGError):
    default_message = "Store operation failed"


class StoreNotFoundError(StoreError):
    default_message = "Store not found"


class ChunkNotFoundError(StoreError):
    default_message = "Chunk not found"


class RetrievalError(BookRAGError):
    default_message = "Search failed"


class VectorUnavailableError(RetrievalError):
    default_message = "No query vector available"


class IngestionError(BookRAGError):
    """
    An ingestion run stopped in one of its setup stages.

    Attributes:
        stage: Name of the pipeline stage that failed
        path: File or directory the stage was working on, if any
    """

    default_message = "Ingestion failed"

    def __init__(
        self,
        message: str | None = None,
        stage: str = "",
        path: str | None = None,
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ):
        context = {**(details or {}), "stage": stage}
        if path is not None:
            context["path"] = path
        super().__init__(message, context, original_error)
        self.stage = stage
        self.path = path


def is_retryable(error: Exception) -> bool:
    return isinstance(error, RetryableError)


_STATUS_ERRORS: dict[int, tuple[type[BookRAGError], str]] = {
    400: (InvalidRequestError, "Invalid request parameters"),
    401: (AuthenticationError, "Authentication failed - invalid API key"),
    403: (AuthenticationError, "Access forbidden - insufficient permissions"),
    404: (NotFoundError, "Resource not found"),
    429: (RateLimitError, "API rate limit exceeded"),
    503: (ServiceUnavailableError, "Service temporarily unavailable"),
}


def _retry_after(headers: dict) -> float | None:
    value = headers.get("Retry-After") or headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def classify_http_error(status_code: int, message: str = "", headers: dict | None = None) -> BookRAGError:
    """
    Map a failed HTTP response to an error instance.

    Args:
        status_code: HTTP status code
        message: Error message from the response, if any
        headers: Response headers; ``Retry-After`` is honoured

    Returns:
        A retryable error for 429, 503 and other 5xx codes, a permanent one otherwise
    """
    details = {"status_code": status_code}

    if status_code in _STATUS_ERRORS:
        error_cls, fallback = _STATUS_ERRORS[status_code]
    elif status_code >= 500:
        error_cls, fallback = TransientError, f"Server error (HTTP {status_code})"
    else:
        error_cls, fallback = PermanentError, f"HTTP error {status_code}"

    if issubclass(error_cls, RetryableError):
        return error_cls(message or fallback, retry_after=_retry_after(headers or {}), details=details)
    return error_cls(message or fallback, details=details)
