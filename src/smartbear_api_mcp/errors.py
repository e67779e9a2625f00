"""Exceptions raised by the resource-client core.

Every error that reached the server keeps its HTTP status and the raw body text
so that the caller can diagnose it against the upstream API's documentation.
"""
from typing import Optional


class ApiClientError(Exception):
    """Base class for all resource-client failures."""


class TransportError(ApiClientError):
    """The request never produced a response (DNS, connect, read timeout...)."""

    def __init__(self, url: str, cause: Exception):
        self.url = url
        self.cause = cause
        super().__init__(f"Network error while requesting {url}: {cause}")


class HttpError(ApiClientError):
    """A response arrived with a non-success status."""

    def __init__(self, status: int, body_text: str, message: Optional[str] = None):
        self.status = status
        self.body_text = body_text
        super().__init__(message or f"Request failed with status {status}: {body_text}")


class JobFailedError(HttpError):
    """An asynchronous job reported a status other than ready or still working."""


class RateLimitExceeded(HttpError):
    """The server kept throttling after the retry budget was spent."""

    def __init__(self, status: int, body_text: str, attempts: int):
        self.attempts = attempts
        super().__init__(
            status,
            body_text,
            f"Rate limited after {attempts} attempts (status {status}): {body_text}",
        )


class DecodeError(ApiClientError):
    """A successful response whose body is not valid JSON."""

    def __init__(self, status: int, body_text: str):
        self.status = status
        self.body_text = body_text
        super().__init__(f"Could not decode JSON response (status {status}): {body_text}")


class ShapeError(ApiClientError):
    """The decoded body is not the shape the operation expects."""


class PollTimeoutError(ApiClientError, TimeoutError):
    def __init__(self, operation: str, budget_seconds: float):
        self.operation = operation
        self.budget_seconds = budget_seconds
        super().__init__(f"{operation} timed out after {budget_seconds:g} seconds")


class PaginationLimitExceeded(ApiClientError):
    def __init__(self, max_pages: int):
        self.max_pages = max_pages
        super().__init__(f"Collection has more than {max_pages} pages")


class OperationCancelled(ApiClientError):
    """The caller cancelled the operation through its cancellation token."""


class UndeclaredResourceType(ApiClientError, LookupError):
    def __init__(self, resource_type: str):
        self.resource_type = resource_type
        super().__init__(
            f"No field policy declared for resource type '{resource_type}'. "
            "Declare one (use FieldPolicy.passthrough() to expose every field)."
        )
