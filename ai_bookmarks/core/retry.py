"""
Retry with backoff around a single-tweet classification.

Makes one logical "classify this tweet" operation resilient to rate
limits, timeouts and malformed output. Each tweet always ends with exactly
one result: the classifier's, or a fallback built from the tweet itself
once the attempts run out. Only cancellation escapes.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence
from urllib.parse import urlparse

from ..config import constants
from .exceptions import (
    CancelledError,
    ClassifierTimeoutError,
    ParseError,
    RateLimitError,
)
from .models import ClassificationResult, RawItem
from .run_context import CancellationToken, RunLog

logger = logging.getLogger(__name__)

ClassifyFn = Callable[[List[RawItem], Sequence[str]], List[ClassificationResult]]

RATE_LIMIT_MARKERS = ('429', 'resource_exhausted', 'too many requests', 'quota')
TIMEOUT_MARKERS = ('timeout', 'timed out')
PARSE_MARKERS = ('parse', 'json')


@dataclass
class RetryPolicy:
    """
    Delays and limits for the backoff scheduler, all in milliseconds.

    Attributes:
        max_attempts: Failed attempts allowed before falling back
        rate_limit_initial_delay_ms: First wait after a rate limit
        rate_limit_max_delay_ms: Cap for the growing rate-limit wait
        rate_limit_multiplier: Growth factor applied after each rate-limit wait
        timeout_delay_ms: Wait after a timed-out request
        parse_error_delay_ms: Wait after an unparseable response
        error_delay_ms: Wait after any other failure
        cooldown_ms: Throttle after a success when more tweets remain
    """
    max_attempts: int = constants.MAX_ATTEMPTS
    rate_limit_initial_delay_ms: float = constants.RATE_LIMIT_INITIAL_DELAY_MS
    rate_limit_max_delay_ms: float = constants.RATE_LIMIT_MAX_DELAY_MS
    rate_limit_multiplier: float = constants.RATE_LIMIT_MULTIPLIER
    timeout_delay_ms: float = constants.TIMEOUT_RETRY_DELAY_MS
    parse_error_delay_ms: float = constants.PARSE_RETRY_DELAY_MS
    error_delay_ms: float = constants.ERROR_RETRY_DELAY_MS
    cooldown_ms: float = constants.COOLDOWN_MS

    def next_rate_limit_delay(self, current_ms: float) -> float:
        return min(current_ms * self.rate_limit_multiplier, self.rate_limit_max_delay_ms)


class FailureKind(str, Enum):
    """How a failed attempt is treated by the scheduler"""
    RATE_LIMIT = 'rate_limit'
    TIMEOUT = 'timeout'
    PARSE = 'parse'
    UNKNOWN = 'unknown'


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _is_429(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    return str(value).strip().upper() in ('429', 'RESOURCE_EXHAUSTED')


def _is_rate_limited(error: Any) -> bool:
    # Shapes seen from the Gemini SDK, HTTP clients and raw error payloads
    for name in ('code', 'status', 'status_code'):
        if _is_429(_field(error, name)):
            return True

    for name in ('error', 'response'):
        nested = _field(error, name)
        if nested is not None and nested is not error:
            for key in ('code', 'status', 'status_code'):
                if _is_429(_field(nested, key)):
                    return True

    details = _field(error, 'details')
    if details:
        try:
            if 'RESOURCE_EXHAUSTED' in json.dumps(details, default=str):
                return True
        except (TypeError, ValueError):
            pass

    message = _error_message(error).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        nested = error.get('error')
        if isinstance(nested, dict) and nested.get('message'):
            return str(nested['message'])
        return str(error.get('message') or json.dumps(error, default=str))
    return str(error)


def classify_failure(error: Any) -> FailureKind:
    """Map any error value raised by a classification attempt to a FailureKind"""
    if isinstance(error, RateLimitError):
        return FailureKind.RATE_LIMIT
    if isinstance(error, (ClassifierTimeoutError, TimeoutError)):
        return FailureKind.TIMEOUT
    if isinstance(error, (ParseError, json.JSONDecodeError)):
        return FailureKind.PARSE

    if _is_rate_limited(error):
        return FailureKind.RATE_LIMIT

    message = _error_message(error).lower()
    if any(marker in message for marker in TIMEOUT_MARKERS):
        return FailureKind.TIMEOUT
    if any(marker in message for marker in PARSE_MARKERS):
        return FailureKind.PARSE
    return FailureKind.UNKNOWN


def is_source_platform_link(url: str) -> bool:
    host = (urlparse(url).hostname or '').lower()
    return any(
        host == domain or host.endswith('.' + domain)
        for domain in constants.SOURCE_PLATFORM_DOMAINS
    )


def build_fallback_result(
    item: RawItem,
    default_category: str = constants.UNCATEGORIZED,
) -> ClassificationResult:
    """Result for a tweet Gemini never managed to classify.

    Marked as not accepted so a person reviews it; the title comes from the
    tweet text itself.
    """
    text = item.text or ''
    if len(text) > constants.FALLBACK_TITLE_MAX_LENGTH:
        title = text[:constants.FALLBACK_TITLE_TRUNCATED_LENGTH] + constants.ELLIPSIS
    else:
        title = text or constants.FALLBACK_TITLE

    return ClassificationResult(
        original_id=item.id,
        is_ai=False,
        title=title,
        categories=[default_category],
        external_links=[url for url in item.urls if not is_source_platform_link(url)],
        is_fallback=True,
    )


class BackoffScheduler:
    """
    Runs the classifier for one tweet until it succeeds or attempts run out.

    Per tweet: Attempting -> Succeeded | Retrying | Exhausted. Rate limits
    back off geometrically (10s, 15s, 22.5s ... capped at 60s); timeouts,
    parse failures and other errors wait a fixed delay. Exhaustion yields a
    fallback result instead of an error.

    Example:
        >>> scheduler = BackoffScheduler(classifier.classify_batch)
        >>> scheduler.process_item(item, categories, results, has_more=True)
    """

    def __init__(
        self,
        classify: ClassifyFn,
        policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], None]] = None,
        default_category: str = constants.UNCATEGORIZED,
    ):
        self.classify = classify
        self.policy = policy or RetryPolicy()
        self.sleep = sleep
        self.default_category = default_category

    def process_item(
        self,
        item: RawItem,
        categories: Sequence[str],
        results: List[ClassificationResult],
        has_more: bool = False,
        cancel_token: Optional[CancellationToken] = None,
        run_log: Optional[RunLog] = None,
    ) -> ClassificationResult:
        """
        Classify one tweet, appending exactly one result to ``results``.

        Args:
            item: Tweet to classify
            categories: Category vocabulary, passed through unchanged
            results: Accumulator owned by the driver
            has_more: Whether tweets remain after this one (enables cooldown)
            cancel_token: Cancellation flag checked before attempts and waits
            run_log: Log receiving one event per state transition

        Returns:
            The result appended to ``results``

        Raises:
            CancelledError: If cancellation is observed
        """
        token = cancel_token or CancellationToken()
        run_log = run_log or RunLog()
        policy = self.policy

        attempts = 0
        backoff_delay = policy.rate_limit_initial_delay_ms

        while attempts < policy.max_attempts:
            token.raise_if_cancelled()
            run_log.info(
                f"Analyzing tweet {item.id} with Gemini "
                f"(attempt {attempts + 1}/{policy.max_attempts})..."
            )

            try:
                result = self._select_result(item, self.classify([item], categories), run_log)
            except CancelledError:
                raise
            except Exception as e:
                attempts += 1
                kind = classify_failure(e)
                logger.debug(f"Attempt {attempts} for tweet {item.id} failed: {e!r}")

                if kind is FailureKind.RATE_LIMIT:
                    delay = backoff_delay
                    backoff_delay = policy.next_rate_limit_delay(backoff_delay)
                    run_log.warning(
                        f"⚠️ API limit reached (429). Pausing {delay / 1000:g} seconds to cool down..."
                    )
                elif kind is FailureKind.TIMEOUT:
                    delay = policy.timeout_delay_ms
                    run_log.warning(f"⏱️ Request timed out ({e}). Retrying...")
                elif kind is FailureKind.PARSE:
                    delay = policy.parse_error_delay_ms
                    run_log.warning(f"🔧 Malformed JSON from Gemini ({e}). Retrying...")
                else:
                    delay = policy.error_delay_ms
                    run_log.error(f"❌ Error processing tweet {item.id}: {e or type(e).__name__}")
                    if attempts < policy.max_attempts:
                        run_log.warning("🔄 Retrying tweet...")

                if attempts >= policy.max_attempts:
                    break
                self._wait(delay, token)
                continue

            results.append(result)
            run_log.success(f"✓ Tweet {item.id} processed successfully")

            if has_more:
                run_log.info("⏳ Safety pause between requests...")
                self._wait(policy.cooldown_ms, token)
            return result

        run_log.warning(
            f"⚠️ Gemini failed {policy.max_attempts} times for tweet {item.id}. "
            f"Creating an unprocessed entry..."
        )
        fallback = build_fallback_result(item, self.default_category)
        results.append(fallback)
        run_log.success("✓ Entry created without Gemini (title taken from the original text)")
        return fallback

    def _select_result(
        self,
        item: RawItem,
        batch_results: List[ClassificationResult],
        run_log: RunLog,
    ) -> ClassificationResult:
        """Pick this tweet's record out of a response.

        An empty response counts as a parse failure so the tweet is retried
        rather than silently dropped.
        """
        if not batch_results:
            raise ParseError(f"Gemini returned no result for tweet {item.id}")

        if len(batch_results) > 1:
            logger.warning(f"Gemini returned {len(batch_results)} results for one tweet; keeping one")

        for result in batch_results:
            if result.original_id == item.id:
                return result

        result = batch_results[0]
        run_log.warning(
            f"⚠️ Gemini answered with id {result.original_id!r} for tweet {item.id}; using the tweet id"
        )
        result.original_id = item.id
        return result

    def _wait(self, delay_ms: float, token: CancellationToken) -> None:
        token.raise_if_cancelled()
        seconds = delay_ms / 1000.0
        if self.sleep is not None:
            self.sleep(seconds)
        elif token.wait(seconds):
            raise CancelledError()
