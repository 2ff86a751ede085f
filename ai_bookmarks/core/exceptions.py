"""
Error taxonomy for the bookmark classification pipeline.

Only CancelledError ever escapes a pipeline run; every other error is
retried by the backoff scheduler and, once retries are exhausted, replaced
by a locally built fallback result.
"""

from typing import Optional


class BookmarkPipelineError(Exception):
    """Base exception for all pipeline errors."""
    pass


class RateLimitError(BookmarkPipelineError):
    """
    The classification service refused the request for quota reasons.

    Raised when:
    - The service answers HTTP 429
    - The service reports RESOURCE_EXHAUSTED
    """

    def __init__(self, message: str, status_code: int = 429):
        super().__init__(message)
        self.status_code = status_code


class ClassifierTimeoutError(BookmarkPipelineError, TimeoutError):
    """A classification request ran past its wall-clock timeout."""

    def __init__(self, timeout_seconds: float):
        super().__init__(f"Request timeout after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class ParseError(BookmarkPipelineError):
    """
    The service returned structured output that could not be repaired.

    Carries a short excerpt of the offending text for diagnostics.
    """

    MAX_EXCERPT = 500

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_excerpt = (raw_text or "")[:self.MAX_EXCERPT]


class CancelledError(BookmarkPipelineError):
    """The run was cancelled by the caller."""

    def __init__(self, message: str = "Processing cancelled by user"):
        super().__init__(message)


class UnknownError(BookmarkPipelineError):
    """Wraps any failure that fits no other category."""

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.original = original
