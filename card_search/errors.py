"""Failures raised by card sources."""

from __future__ import annotations

HTTP_NOT_FOUND = 404
HTTP_TOO_MANY_REQUESTS = 429


class CardSourceError(Exception):
    """Base class for anything a page or card fetch can fail with.

    Attributes:
        key: The set code or card key being fetched, when known.
        status: The HTTP status code, when the failure came from a response.
    """

    def __init__(self, message: str, *, key: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.key = key
        self.status = status


class NotFoundError(CardSourceError):
    """The requested set or card does not exist."""


class RateLimitedError(CardSourceError):
    """The API asked us to slow down."""

    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        status: int | None = HTTP_TOO_MANY_REQUESTS,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, key=key, status=status)
        self.retry_after = retry_after


class TransientPageFailure(CardSourceError):
    """Network error, timeout or server error. The page counts as empty."""


class MalformedPageError(TransientPageFailure):
    """The response could not be decoded into cards."""


# Expected during exploratory lookups; callers treat them as "no cards".
EXPECTED_FAILURES = (NotFoundError, RateLimitedError)


def error_for_status(status: int, key: str | None = None, *, retry_after: float | None = None) -> CardSourceError:
    """Map an HTTP error status to the matching failure.

    Args:
        status: HTTP status code of the failed response
        key: Set code or card key that was requested
        retry_after: Seconds from a ``Retry-After`` header, if any

    Returns:
        The exception to raise
    """
    if status == HTTP_NOT_FOUND:
        return NotFoundError(f"{key!r} not found", key=key, status=status)
    if status == HTTP_TOO_MANY_REQUESTS:
        return RateLimitedError(f"Rate limited while fetching {key!r}", key=key, retry_after=retry_after)
    return TransientPageFailure(f"Server returned {status} for {key!r}", key=key, status=status)
