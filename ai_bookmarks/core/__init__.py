"""
Core functionality for AI Bookmarks.
This package contains the Gemini classification pipeline: input
sanitization and response repair, the single-request classifier,
retry with backoff, the sequential driver and the import step.
"""

from .exceptions import (
    BookmarkPipelineError,
    CancelledError,
    ClassifierTimeoutError,
    ParseError,
    RateLimitError,
    UnknownError,
)
from .models import Bookmark, ClassificationResult, LogEvent, ProgressState, RawItem, Severity
from .pipeline import ClassificationPipeline, process_bookmarks_with_gemini
from .retry import BackoffScheduler, FailureKind, RetryPolicy, classify_failure
from .run_context import CancellationToken, RunLog

__version__ = '0.1.0'

__all__ = [
    'BookmarkPipelineError',
    'CancelledError',
    'ClassifierTimeoutError',
    'ParseError',
    'RateLimitError',
    'UnknownError',
    'Bookmark',
    'ClassificationResult',
    'LogEvent',
    'ProgressState',
    'RawItem',
    'Severity',
    'ClassificationPipeline',
    'process_bookmarks_with_gemini',
    'BackoffScheduler',
    'FailureKind',
    'RetryPolicy',
    'classify_failure',
    'CancellationToken',
    'RunLog',
]
