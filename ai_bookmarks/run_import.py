"""
Import a Twitter bookmarks export, classifying each tweet with Gemini.

Usage:
    ai-bookmarks-import bookmarks.json --output new_bookmarks.json
    ai-bookmarks-import bookmarks.json --existing saved.json --deleted deleted_ids.json
"""

import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from ai_bookmarks.config.config import Config
from ai_bookmarks.config.constants import DEFAULT_CATEGORIES
from ai_bookmarks.core.exceptions import CancelledError
from ai_bookmarks.core.importer import BookmarkImporter, load_tweets
from ai_bookmarks.core.models import Bookmark
from ai_bookmarks.core.pipeline import ClassificationPipeline
from ai_bookmarks.core.run_context import CancellationToken

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CANCELLED = 130


def _read_json(path: str):
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def _write_json(path: str, data) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def load_existing_bookmarks(path: Optional[str]) -> List[Bookmark]:
    if not path:
        return []
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get('bookmarks') or data.get('data') or []
    return [Bookmark.from_dict(b) for b in data if isinstance(b, dict)]


def load_deleted_ids(path: Optional[str]) -> List[str]:
    if not path:
        return []
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get('deletedIds') or []
    return [str(i) for i in data]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Classify a Twitter bookmarks export with Gemini')
    parser.add_argument('export', help='Twitter bookmarks export (JSON)')
    parser.add_argument('--categories', help='Comma separated category list (defaults to the built-in list)')
    parser.add_argument('--existing', help='JSON file with bookmarks already imported')
    parser.add_argument('--deleted', help='JSON file with ids of deleted bookmarks')
    parser.add_argument('--output', default='new_bookmarks.json', help='Where to write the new bookmarks')
    parser.add_argument('--rejected', help='Where to write tweets classified as not AI')
    parser.add_argument('--log-level', default=Config.LOG_LEVEL, help='Logging level (default: %(default)s)')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        settings = Config.validate()
        logger.info(f"Using model {settings['model']} (timeout {settings['timeout_seconds']:g}s)")

        categories = (
            [c.strip() for c in args.categories.split(',') if c.strip()]
            if args.categories else list(DEFAULT_CATEGORIES)
        )
        tweets = load_tweets(args.export)
        existing = load_existing_bookmarks(args.existing)
        deleted = load_deleted_ids(args.deleted)
    except (ValueError, OSError) as e:
        logger.error(f"❌ {e}")
        return EXIT_ERROR

    token = CancellationToken()

    def handle_interrupt(signum, frame):
        logger.warning("Stop requested, finishing the current request...")
        token.cancel()

    previous_handler = signal.signal(signal.SIGINT, handle_interrupt)

    def on_progress(current: int, total: int) -> None:
        if total:
            logger.info(f"Progress: {current}/{total} ({current * 100 // total}%)")

    importer = BookmarkImporter(
        ClassificationPipeline.from_config(Config),
        categories,
        existing_bookmarks=existing,
        deleted_ids=deleted,
    )

    try:
        summary = importer.run(tweets, on_progress=on_progress, cancel_token=token)
    except CancelledError:
        logger.warning("Process stopped by the user. Nothing was written.")
        return EXIT_CANCELLED
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    _write_json(args.output, [b.to_dict() for b in summary.bookmarks])
    if args.rejected:
        _write_json(args.rejected, summary.rejected_tweets)

    print(f"\n✅ Import complete!")
    print(f"New AI bookmarks: {summary.added}")
    print(f"Duplicates or previously deleted: {summary.skipped}")
    print(f"Discarded (not AI): {summary.rejected}")
    print(f"Written to: {args.output}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
