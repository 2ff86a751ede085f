"""
Import of a Twitter bookmarks export into bookmark records.

Sits between an export file and the classification pipeline: drops tweets
already imported or previously deleted, runs the pipeline on the rest and
turns accepted results into Bookmark records whose categories always come
from the vocabulary.
"""

import json
import logging
import secrets
import string
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from ..config import constants
from .models import Bookmark, ClassificationResult
from .pipeline import ClassificationPipeline
from .run_context import CancellationToken, LogCallback, ProgressCallback

logger = logging.getLogger(__name__)

ID_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def load_tweets(source: Union[str, Path, List[Any], Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Extract the list of tweets from an export file or decoded export.

    Accepts a list of tweets, an object with a ``bookmarks`` list, or any
    object whose first list-valued field holds the tweets.

    Raises:
        ValueError: If the file cannot be read, or the data is a backup file
            or holds no tweet list
    """
    if isinstance(source, (str, Path)):
        try:
            with open(source, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Export file {source} is not valid JSON: {e}") from e
        except OSError as e:
            raise ValueError(f"Cannot read export file {source}: {e}") from e
    else:
        data = source

    if isinstance(data, dict):
        if data.get('backupVersion') and 'bookmarks' in data and 'categories' in data:
            raise ValueError("This is a backup file, not a Twitter bookmarks export")
        if isinstance(data.get('bookmarks'), list):
            tweets = data['bookmarks']
        else:
            tweets = next((value for value in data.values() if isinstance(value, list)), None)
            if tweets is None:
                raise ValueError("No list of tweets found in the export")
    elif isinstance(data, list):
        tweets = data
    else:
        raise ValueError(f"Unexpected JSON structure: {type(data).__name__}")

    valid = [t for t in tweets if isinstance(t, dict)]
    logger.info(f"Found {len(valid)} tweets in export")
    return valid


def tweet_id(tweet: Dict[str, Any]) -> Optional[str]:
    value = tweet.get('id_str') or tweet.get('id')
    if value is None or isinstance(value, bool) or str(value) == '':
        return None
    return str(value)


def normalize_categories(categories: Iterable[str], vocabulary: Sequence[str]) -> List[str]:
    """Keep only vocabulary categories, falling back to the default one"""
    kept = []
    for category in categories or []:
        if category in vocabulary and category not in kept:
            kept.append(category)
    return kept or [constants.UNCATEGORIZED]


def _random_suffix(length: int = 9) -> str:
    return ''.join(secrets.choice(ID_SUFFIX_ALPHABET) for _ in range(length))


def result_to_bookmark(
    result: ClassificationResult,
    vocabulary: Sequence[str],
    created_at: Optional[int] = None,
) -> Bookmark:
    """Turn an accepted classification result into a bookmark record"""
    return Bookmark(
        id=result.original_id + _random_suffix(),
        title=result.title or constants.UNTITLED,
        description=result.description or constants.NO_DESCRIPTION,
        original_link=constants.ORIGINAL_LINK_TEMPLATE.format(result.original_id),
        external_links=list(result.external_links or []),
        categories=normalize_categories(result.categories, vocabulary),
        created_at=created_at if created_at is not None else int(time.time() * 1000),
    )


@dataclass
class ImportSummary:
    """
    Outcome of one import.

    Attributes:
        added: Number of new bookmarks
        skipped: Tweets skipped as duplicates, deleted or without id
        rejected: Tweets classified as off-topic (including fallbacks)
        bookmarks: The new bookmark records
        rejected_tweets: Raw tweets that were rejected, for manual review
    """
    added: int = 0
    skipped: int = 0
    rejected: int = 0
    bookmarks: List[Bookmark] = field(default_factory=list)
    rejected_tweets: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'added': self.added,
            'skipped': self.skipped,
            'rejected': self.rejected,
            'bookmarks': [b.to_dict() for b in self.bookmarks],
        }


class BookmarkImporter:
    """Deduplicates an export against known bookmarks and imports the rest"""

    def __init__(
        self,
        pipeline: ClassificationPipeline,
        categories: Sequence[str],
        existing_bookmarks: Iterable[Bookmark] = (),
        deleted_ids: Iterable[str] = (),
    ):
        self.pipeline = pipeline
        self.categories = list(categories)
        self.existing_ids: Set[str] = {b.original_id for b in existing_bookmarks}
        self.deleted_ids: Set[str] = {str(i) for i in deleted_ids}

    def filter_new(self, tweets: Sequence[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], int]:
        """Drop tweets with no id, already imported or deleted; return (kept, skipped)"""
        unique = []
        for tweet in tweets:
            tid = tweet_id(tweet)
            if tid is None or tid in self.existing_ids or tid in self.deleted_ids:
                continue
            unique.append(tweet)
        return unique, len(tweets) - len(unique)

    def run(
        self,
        tweets: Sequence[Dict[str, Any]],
        on_progress: Optional[ProgressCallback] = None,
        on_log: Optional[LogCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ImportSummary:
        """
        Import tweets, returning the new bookmarks and the rejected tweets.

        Raises:
            CancelledError: If the pipeline run is cancelled
        """
        unique, skipped = self.filter_new(tweets)
        logger.info(f"Import: {len(unique)} new tweets, {skipped} duplicates or deleted")

        if not unique:
            return ImportSummary(skipped=skipped)

        results = self.pipeline.run(unique, self.categories, on_progress, on_log, cancel_token)

        rejected_ids = {r.original_id for r in results if not r.is_ai}
        rejected_tweets = [t for t in unique if tweet_id(t) in rejected_ids]

        now = int(time.time() * 1000)
        bookmarks = [
            result_to_bookmark(r, self.categories, created_at=now)
            for r in results if r.is_ai
        ]

        summary = ImportSummary(
            added=len(bookmarks),
            skipped=skipped,
            rejected=len(rejected_tweets),
            bookmarks=bookmarks,
            rejected_tweets=rejected_tweets,
        )
        logger.info(
            f"✅ Import complete. {summary.added} new AI bookmarks added. "
            f"{summary.skipped} duplicates or previously deleted ignored. "
            f"{summary.rejected} discarded (not AI)."
        )
        return summary
