"""
Input sanitization and response repair for the Gemini classifier.

Tweet text is cleaned before it goes into a request, and the text that
comes back is repaired before it is parsed. Gemini's JSON mode is a hint,
not a guarantee: responses arrive wrapped in code fences, with trailing
commas, or with a runaway title that never closes and swallows the next
field. Everything here is pure string/data work with no network access.
"""

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from ..config import constants
from .exceptions import ParseError
from .models import ClassificationResult

logger = logging.getLogger(__name__)

HASHTAG_RE = re.compile(r'#\w+')
MENTION_RE = re.compile(r'@\w+')
CONTROL_CHARS_RE = re.compile(r'[\u0000-\u001F\u007F-\u009F]')
WHITESPACE_RE = re.compile(r'\s+')
LEADING_FENCE_RE = re.compile(r'^```[\w-]*[ \t]*\r?\n?')
TRAILING_FENCE_RE = re.compile(r'\s*```\s*$')
TRAILING_COMMA_RE = re.compile(r',\s*([}\]])')
LONG_TITLE_RE = re.compile(
    r'"title"\s*:\s*"((?:[^"\\]|\\.){%d,})"' % constants.TITLE_MAX_LENGTH
)
TRAILING_PUNCTUATION_RE = re.compile(r'[\s.,;:"\']+$')
DANGLING_ESCAPE_RE = re.compile(r'(\\+)(u[0-9a-fA-F]{0,3})?$')


def sanitize_text(text: Optional[str], max_length: int = constants.MAX_TEXT_LENGTH) -> str:
    """Clean tweet text before it is embedded in a request.

    Removes hashtags, mentions and control characters, collapses whitespace
    and truncates to ``max_length`` (never more than the hard cap).
    """
    if not text:
        return ''
    max_length = min(max_length, constants.MAX_TEXT_LENGTH_CAP)
    cleaned = HASHTAG_RE.sub('', text)
    cleaned = MENTION_RE.sub('', cleaned)
    # Whitespace controls become spaces before the rest are dropped
    cleaned = re.sub(r'[\r\n\t]+', ' ', cleaned)
    cleaned = CONTROL_CHARS_RE.sub('', cleaned)
    cleaned = WHITESPACE_RE.sub(' ', cleaned).strip()
    return cleaned[:max_length]


def truncate_title(title: str) -> str:
    """Cut a decoded title to 97 characters plus an ellipsis"""
    return title[:constants.TITLE_TRUNCATED_LENGTH] + constants.ELLIPSIS


def _truncate_encoded(value: str) -> str:
    """Truncate a still-encoded JSON string value without splitting an escape."""
    cut = value[:constants.TITLE_TRUNCATED_LENGTH]
    match = DANGLING_ESCAPE_RE.search(cut)
    # An odd run of backslashes means the last one opens an unfinished escape
    if match and len(match.group(1)) % 2 == 1:
        cut = cut[:match.start()] + match.group(1)[:-1]
    return cut + constants.ELLIPSIS


def _contamination_patterns(fields: Iterable[str]) -> List[re.Pattern]:
    return [
        re.compile(r'(?:["\'],?|,)\s*["\']' + re.escape(name) + r'["\']\s*:', re.IGNORECASE)
        for name in fields
    ]


def clean_contaminated_title(
    title: Optional[str],
    contamination_fields: Iterable[str] = constants.CONTAMINATION_FIELDS,
) -> Optional[str]:
    """Cut a title that swallowed the start of a neighbouring field.

    A response truncated mid-record can leave a title such as
    ``Great paper","category":"Altres``. The title is cut where the
    first known field key appears and trailing punctuation is removed.
    Titles without contamination are returned unchanged.
    """
    if not title:
        return title

    earliest = None
    for pattern in _contamination_patterns(contamination_fields):
        match = pattern.search(title)
        if match and (earliest is None or match.start() < earliest):
            earliest = match.start()

    if earliest is None:
        return title

    cleaned = TRAILING_PUNCTUATION_RE.sub('', title[:earliest].strip())
    logger.debug(f"Removed contamination from title: {title!r} -> {cleaned!r}")
    return cleaned


def repair_title(
    title: Optional[str],
    contamination_fields: Iterable[str] = constants.CONTAMINATION_FIELDS,
) -> Optional[str]:
    """Apply the post-parse title rules: hard length cap, then contamination cut"""
    if not isinstance(title, str):
        return title
    if len(title) > constants.TITLE_MAX_LENGTH:
        return truncate_title(title)
    return clean_contaminated_title(title, contamination_fields)


def repair_response_text(raw_text: str) -> str:
    """Repair raw response text so that it has a chance to parse.

    Steps, in order:
      1. strip Markdown code fences (with or without a language tag)
      2. strip control characters
      3. drop trailing commas before a closing brace or bracket
      4. shorten any title of 100+ characters to 97 plus an ellipsis

    Step 4 runs on the text rather than the decoded object because a
    runaway title is exactly what breaks decoding of the whole response.
    """
    text = (raw_text or '').strip()
    if text.startswith('```'):
        text = LEADING_FENCE_RE.sub('', text)
        text = TRAILING_FENCE_RE.sub('', text)

    text = CONTROL_CHARS_RE.sub('', text)
    text = TRAILING_COMMA_RE.sub(r'\1', text)
    text = text.strip()

    return LONG_TITLE_RE.sub(
        lambda match: '"title":"' + _truncate_encoded(match.group(1)) + '"',
        text
    )


def _as_records(parsed: Any, text: str) -> List[Dict[str, Any]]:
    if isinstance(parsed, dict):
        if 'originalId' in parsed or 'isAI' in parsed:
            parsed = [parsed]
        else:
            lists = [value for value in parsed.values() if isinstance(value, list)]
            if not lists:
                raise ParseError("Gemini response is not an array of results", text)
            parsed = lists[0]

    if not isinstance(parsed, list):
        raise ParseError(f"Gemini response has unexpected type {type(parsed).__name__}", text)

    for record in parsed:
        if not isinstance(record, dict):
            raise ParseError("Gemini response contains a non-object result", text)
    return parsed


def parse_results(
    text: str,
    contamination_fields: Iterable[str] = constants.CONTAMINATION_FIELDS,
) -> List[ClassificationResult]:
    """Decode repaired text into results, fixing titles along the way.

    Raises:
        ParseError: If the text does not decode into result records
    """
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"JSON parse error: {e}")
        logger.debug(f"Problematic JSON: {text[:ParseError.MAX_EXCERPT]}")
        raise ParseError(f"Failed to parse Gemini response: {e}", text) from e

    results = []
    for record in _as_records(parsed, text):
        try:
            result = ClassificationResult.from_dict(record)
        except ParseError as e:
            raise ParseError(f"Malformed result in Gemini response: {e}", text) from e
        result.title = repair_title(result.title, contamination_fields)
        results.append(result)
    return results


def repair_and_parse(
    raw_text: Optional[str],
    contamination_fields: Iterable[str] = constants.CONTAMINATION_FIELDS,
) -> List[ClassificationResult]:
    """Repair a raw response and parse it; empty responses give no results"""
    if not raw_text or not raw_text.strip():
        return []
    return parse_results(repair_response_text(raw_text), contamination_fields)
