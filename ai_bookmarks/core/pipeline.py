"""
Sequential driver for classifying a batch of bookmarked tweets.

Tweets are sent to Gemini strictly one at a time, in input order. The
retry policy lives in BackoffScheduler; this module only filters the
input, reports progress and stops when cancelled.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .exceptions import CancelledError
from .gemini_classifier import GeminiClassifier
from .models import ClassificationResult, ProgressState, RawItem
from .retry import BackoffScheduler
from .run_context import CancellationToken, LogCallback, ProgressCallback, RunLog

logger = logging.getLogger(__name__)

TweetLike = Union[RawItem, Dict[str, Any]]


def to_raw_items(tweets: Sequence[TweetLike]) -> List[RawItem]:
    """Normalize tweets (raw dicts or RawItems) into RawItems"""
    return [t if isinstance(t, RawItem) else RawItem.from_tweet(t) for t in tweets]


class ClassificationPipeline:
    """
    Classifies tweets one by one, producing one result per tweet with text.

    Example:
        >>> pipeline = ClassificationPipeline.from_config(Config)
        >>> results = pipeline.run(tweets, categories, on_progress, on_log, token)
    """

    def __init__(self, scheduler: BackoffScheduler):
        self.scheduler = scheduler
        self.run_log: Optional[RunLog] = None
        self.progress: Optional[ProgressState] = None

    @classmethod
    def from_config(
        cls,
        config,
        client: Optional[Any] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> 'ClassificationPipeline':
        classifier = GeminiClassifier.from_config(config, client=client)
        scheduler = BackoffScheduler(
            classifier.classify_batch,
            policy=config.retry_policy(),
            sleep=sleep,
        )
        return cls(scheduler)

    def run(
        self,
        tweets: Sequence[TweetLike],
        categories: Sequence[str],
        on_progress: Optional[ProgressCallback] = None,
        on_log: Optional[LogCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[ClassificationResult]:
        """
        Classify every tweet that has text.

        Args:
            tweets: Tweets to classify; read-only
            categories: Category vocabulary, handed to the classifier unchanged
            on_progress: Called with (current, total) before each tweet and at the end
            on_log: Called with (message, severity) for every log event
            cancel_token: Checked before each tweet, attempt and wait

        Returns:
            One result per tweet with text, in input order

        Raises:
            CancelledError: If the run is cancelled; no results are returned
        """
        token = cancel_token or CancellationToken()
        run_log = RunLog(on_log)
        self.run_log = run_log

        items = [item for item in to_raw_items(tweets) if item.has_text]
        for item in items:
            if not item.has_source_id:
                run_log.warning(f"⚠️ Tweet without id, using generated id {item.id}")
        total = len(items)
        results: List[ClassificationResult] = []

        def report(current: int) -> None:
            self.progress = ProgressState(current=current, total=total)
            if on_progress is not None:
                on_progress(current, total)

        try:
            for index, item in enumerate(items):
                token.raise_if_cancelled()
                report(index)
                run_log.info(f"Processing tweet {index + 1} of {total}...")
                self.scheduler.process_item(
                    item,
                    categories,
                    results,
                    has_more=index + 1 < total,
                    cancel_token=token,
                    run_log=run_log,
                )
        except CancelledError:
            run_log.warning("Process stopped by the user.")
            report(total)
            raise

        report(total)
        run_log.success(f"Process finished. {len(results)} tweet(s) classified.")
        return results


def process_bookmarks_with_gemini(
    tweets: Sequence[TweetLike],
    categories: Sequence[str],
    on_progress: Optional[ProgressCallback] = None,
    on_log: Optional[LogCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
    config=None,
    client: Optional[Any] = None,
) -> List[ClassificationResult]:
    """Build a pipeline from configuration and run it once"""
    if config is None:
        from ..config.config import Config
        config = Config
    pipeline = ClassificationPipeline.from_config(config, client=client)
    return pipeline.run(tweets, categories, on_progress, on_log, cancel_token)
