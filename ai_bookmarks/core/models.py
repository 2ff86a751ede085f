"""
Records exchanged between the classification pipeline and its callers.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .exceptions import ParseError


class Severity(str, Enum):
    """Severity of a log event shown to the user"""
    INFO = 'info'
    SUCCESS = 'success'
    WARNING = 'warning'
    ERROR = 'error'

    @property
    def log_level(self) -> int:
        return {
            Severity.INFO: logging.INFO,
            Severity.SUCCESS: logging.INFO,
            Severity.WARNING: logging.WARNING,
            Severity.ERROR: logging.ERROR,
        }[self]


def _random_token() -> str:
    return uuid.uuid4().hex


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == 'true'
    return bool(value)


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        raise ParseError(f"Expected a string, got {type(value).__name__}")
    return str(value)


def _as_str_list(value: Any, name: str) -> List[str]:
    """Read a string-array field; a lone string counts as a one-item list"""
    if value is None or value == '':
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ParseError(f"Field '{name}' must be an array of strings, got {type(value).__name__}")
    return [str(v) for v in value if v is not None and not isinstance(v, (dict, list))]


@dataclass(frozen=True)
class RawItem:
    """
    A bookmarked tweet as it comes out of an export file.

    Attributes:
        id: Tweet identifier (random token if the source had none)
        text: Tweet text, None if the tweet has no text
        urls: Expanded URLs attached to the tweet
        has_source_id: False when the id is a random token
    """
    id: str
    text: Optional[str] = None
    urls: List[str] = field(default_factory=list)
    has_source_id: bool = True

    @classmethod
    def from_tweet(cls, tweet: Dict[str, Any]) -> 'RawItem':
        """Build an item from a raw tweet dict (id_str/id, full_text/text, entities.urls)"""
        source_id = tweet.get('id_str') or tweet.get('id')
        if isinstance(source_id, (str, int)) and not isinstance(source_id, bool) and str(source_id):
            item_id, has_source_id = str(source_id), True
        else:
            item_id, has_source_id = _random_token(), False

        text = tweet.get('full_text') or tweet.get('text') or None

        urls = []
        entities = tweet.get('entities') or {}
        for entry in entities.get('urls') or []:
            if isinstance(entry, dict) and entry.get('expanded_url'):
                urls.append(entry['expanded_url'])

        return cls(id=item_id, text=text, urls=urls, has_source_id=has_source_id)

    @property
    def has_text(self) -> bool:
        return bool(self.text)


@dataclass
class ClassificationResult:
    """
    Classification of one RawItem, either from the service or built locally.

    Attributes:
        original_id: Id of the RawItem this result belongs to
        is_ai: Whether the item was accepted as on-topic
        title: Short title
        description: One or two sentence summary
        categories: Categories chosen from the caller's vocabulary
        external_links: Relevant links found in the item
        is_fallback: True when built locally after retries ran out
    """
    original_id: str
    is_ai: bool
    title: Optional[str] = None
    description: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    external_links: List[str] = field(default_factory=list)
    is_fallback: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ClassificationResult':
        """Build a result from a decoded response record.

        Raises:
            ParseError: If a field has a shape that cannot be read
        """
        categories = data.get('categories')
        if categories is None:
            # Older single-category shape
            categories = data.get('category')
        return cls(
            original_id=str(data.get('originalId', '')),
            is_ai=_as_bool(data.get('isAI', False)),
            title=_as_text(data.get('title')),
            description=_as_text(data.get('description')),
            categories=_as_str_list(categories, 'categories'),
            external_links=_as_str_list(data.get('externalLinks'), 'externalLinks'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'originalId': self.original_id,
            'isAI': self.is_ai,
            'categories': list(self.categories),
            'externalLinks': list(self.external_links),
        }
        if self.title is not None:
            data['title'] = self.title
        if self.description is not None:
            data['description'] = self.description
        return data


@dataclass(frozen=True)
class ProgressState:
    """Progress over the filtered input sequence"""
    current: int
    total: int


@dataclass(frozen=True)
class LogEvent:
    """One entry of the run log"""
    message: str
    severity: Severity
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


@dataclass
class Bookmark:
    """
    Bookmark record handed to the persistence layer.

    Attributes:
        id: Unique bookmark id (original tweet id plus a random suffix)
        title: Bookmark title
        description: Bookmark summary
        original_link: Link to the source tweet
        external_links: Links found in the tweet
        categories: Categories, always within the vocabulary
        created_at: Creation time in epoch milliseconds
    """
    id: str
    title: str
    description: str
    original_link: str
    external_links: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    created_at: int = 0

    @property
    def original_id(self) -> str:
        return self.original_link.rstrip('/').split('/')[-1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'originalLink': self.original_link,
            'externalLinks': list(self.external_links),
            'categories': list(self.categories),
            'createdAt': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Bookmark':
        categories = data.get('categories')
        if categories is None:
            categories = [data['category']] if data.get('category') else []
        return cls(
            id=str(data.get('id', '')),
            title=data.get('title') or '',
            description=data.get('description') or '',
            original_link=data.get('originalLink') or '',
            external_links=list(data.get('externalLinks') or []),
            categories=list(categories),
            created_at=int(data.get('createdAt') or 0),
        )
