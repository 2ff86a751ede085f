import json
from typing import Dict, List, Sequence
from unittest.mock import Mock

import pytest

from ai_bookmarks.core.models import ClassificationResult, RawItem
from ai_bookmarks.core.retry import BackoffScheduler, RetryPolicy
from ai_bookmarks.core.pipeline import ClassificationPipeline

CATEGORIES = ['Divulgació', 'Agents', 'RAG', 'Eines', 'Altres']


class SleepRecorder:
    """Stands in for time.sleep and records every requested wait"""

    def __init__(self, on_sleep=None):
        self.calls: List[float] = []
        self.on_sleep = on_sleep

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.on_sleep is not None:
            self.on_sleep(seconds)


class FakeClassifier:
    """
    Scripted classify_batch replacement.

    ``outcomes`` maps a tweet id to a list of per-attempt outcomes: an
    exception instance is raised, anything else means success. Ids without
    a script always succeed.
    """

    def __init__(self, outcomes: Dict[str, list] = None):
        self.outcomes = {k: list(v) for k, v in (outcomes or {}).items()}
        self.calls = []

    def __call__(self, items: List[RawItem], categories: Sequence[str]) -> List[ClassificationResult]:
        item = items[0]
        self.calls.append((item.id, categories))
        script = self.outcomes.get(item.id)
        if script:
            outcome = script.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
        return [ClassificationResult(
            original_id=item.id,
            is_ai=True,
            title=f"Title {item.id}",
            description='A summary',
            categories=['RAG'],
            external_links=['https://example.com'],
        )]

    @property
    def called_ids(self) -> List[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def categories():
    return list(CATEGORIES)


@pytest.fixture
def sample_tweet():
    return {
        "id_str": "1880000000000000001",
        "full_text": "New #RAG paper from @someone:\nretrieval\tbeats fine-tuning https://t.co/x",
        "entities": {
            "urls": [
                {"expanded_url": "https://arxiv.org/abs/2401.00001"},
                {"expanded_url": "https://twitter.com/someone/status/1"},
                {"expanded_url": "https://x.com/someone/status/2"}
            ]
        }
    }


@pytest.fixture
def make_tweets():
    def _make(count: int, without_text: Sequence[int] = ()):
        tweets = []
        for index in range(count):
            tweet = {"id_str": str(index + 1), "full_text": f"Tweet number {index + 1} about LLMs"}
            if index in without_text:
                tweet["full_text"] = ""
            tweets.append(tweet)
        return tweets
    return _make


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def fast_policy():
    return RetryPolicy(max_attempts=3)


@pytest.fixture
def make_pipeline(sleep_recorder):
    def _make(classifier: FakeClassifier, policy: RetryPolicy = None, sleep=None):
        scheduler = BackoffScheduler(classifier, policy=policy or RetryPolicy(), sleep=sleep or sleep_recorder)
        return ClassificationPipeline(scheduler)
    return _make


@pytest.fixture
def mock_genai_client():
    """Mock google-genai client whose generate_content returns a response with .text"""
    client = Mock()

    def respond(records_or_text):
        text = records_or_text if isinstance(records_or_text, str) else json.dumps(records_or_text)
        client.models.generate_content.return_value = Mock(text=text)
        return client

    client.respond = respond
    return client
