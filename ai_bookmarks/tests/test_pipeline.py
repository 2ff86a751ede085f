from unittest.mock import Mock

import pytest

from ai_bookmarks.core.exceptions import CancelledError, RateLimitError
from ai_bookmarks.core.models import ProgressState, RawItem
from ai_bookmarks.core.pipeline import (
    ClassificationPipeline,
    process_bookmarks_with_gemini,
    to_raw_items,
)
from ai_bookmarks.core.retry import RetryPolicy
from ai_bookmarks.core.run_context import CancellationToken
from conftest import FakeClassifier, SleepRecorder


def test_one_result_per_tweet_with_text_in_order(make_pipeline, make_tweets, categories):
    tweets = make_tweets(5, without_text=(1,))
    classifier = FakeClassifier({"4": [RuntimeError("down")] * 3})
    pipeline = make_pipeline(classifier, policy=RetryPolicy(max_attempts=3))

    results = pipeline.run(tweets, categories)

    assert [r.original_id for r in results] == ["1", "3", "4", "5"]
    assert [r.is_fallback for r in results] == [False, False, True, False]
    assert "2" not in classifier.called_ids


@pytest.mark.parametrize("ids", [
    ["10", "2", "33"],
    ["b", "a"],
    ["7"],
])
def test_output_follows_input_order(make_pipeline, categories, ids):
    tweets = [{"id_str": i, "full_text": f"Text {i}"} for i in ids]
    results = make_pipeline(FakeClassifier()).run(tweets, categories)
    assert [r.original_id for r in results] == ids


def test_empty_input(make_pipeline, categories):
    on_progress = Mock()
    results = make_pipeline(FakeClassifier()).run([], categories, on_progress=on_progress)
    assert results == []
    on_progress.assert_called_once_with(0, 0)


def test_progress_reports(make_pipeline, make_tweets, categories):
    calls = []
    pipeline = make_pipeline(FakeClassifier())

    pipeline.run(make_tweets(3), categories, on_progress=lambda c, t: calls.append((c, t)))

    assert calls == [(0, 3), (1, 3), (2, 3), (3, 3)]
    assert pipeline.progress == ProgressState(current=3, total=3)


def test_progress_total_excludes_tweets_without_text(make_pipeline, make_tweets, categories):
    calls = []
    make_pipeline(FakeClassifier()).run(
        make_tweets(3, without_text=(0,)), categories, on_progress=lambda c, t: calls.append((c, t))
    )
    assert calls == [(0, 2), (1, 2), (2, 2)]


def test_cooldown_between_tweets_only(make_pipeline, make_tweets, categories, sleep_recorder):
    make_pipeline(FakeClassifier()).run(make_tweets(3), categories)
    assert sleep_recorder.calls == [4.0, 4.0]


def test_log_callback(make_pipeline, make_tweets, categories):
    events = []
    classifier = FakeClassifier({"1": [RateLimitError("429")]})

    make_pipeline(classifier).run(make_tweets(1), categories, on_log=lambda m, s: events.append((m, s)))

    severities = [s for _, s in events]
    assert severities[0] == 'info'
    assert 'warning' in severities
    assert events[-1] == ("Process finished. 1 tweet(s) classified.", 'success')
    assert events[0][0] == "Processing tweet 1 of 1..."


def test_cancel_during_backoff(make_tweets, make_pipeline, categories):
    token = CancellationToken()
    classifier = FakeClassifier({"3": [RateLimitError("429")]})
    progress = []
    events = []

    def on_sleep(seconds):
        # Cancel during the rate-limit wait of the third tweet
        if classifier.called_ids and classifier.called_ids[-1] == "3":
            token.cancel()

    pipeline = make_pipeline(classifier, sleep=SleepRecorder(on_sleep=on_sleep))

    with pytest.raises(CancelledError):
        pipeline.run(
            make_tweets(5),
            categories,
            on_progress=lambda c, t: progress.append((c, t)),
            on_log=lambda m, s: events.append((m, s)),
            cancel_token=token,
        )

    assert classifier.called_ids == ["1", "2", "3"]
    assert progress[-1] == (5, 5)
    assert ("Process stopped by the user.", 'warning') in events


def test_cancel_before_start(make_pipeline, make_tweets, categories):
    token = CancellationToken()
    token.cancel()
    classifier = FakeClassifier()
    progress = []

    with pytest.raises(CancelledError):
        make_pipeline(classifier).run(
            make_tweets(2), categories, on_progress=lambda c, t: progress.append((c, t)), cancel_token=token
        )

    assert classifier.calls == []
    assert progress == [(2, 2)]


def test_vocabulary_is_passed_unchanged(make_pipeline, make_tweets, categories):
    classifier = FakeClassifier()
    make_pipeline(classifier).run(make_tweets(2), categories)
    assert all(vocabulary is categories for _, vocabulary in classifier.calls)


def test_input_is_not_mutated(make_pipeline, make_tweets, categories):
    tweets = make_tweets(2)
    snapshot = [dict(t) for t in tweets]
    make_pipeline(FakeClassifier()).run(tweets, categories)
    assert tweets == snapshot


def test_to_raw_items_accepts_both_shapes():
    item = RawItem(id="1", text="a")
    items = to_raw_items([item, {"id": 2, "text": "b"}])
    assert items[0] is item
    assert items[1].id == "2"


def test_from_config_uses_client_and_policy(mock_genai_client, make_tweets, categories):
    config = Mock(
        GEMINI_API_KEY=None,
        GEMINI_MODEL='gemini-test',
        GEMINI_TEMPERATURE=0.1,
        GEMINI_MAX_OUTPUT_TOKENS=100,
        CLASSIFIER_TIMEOUT_SECONDS=5,
        MAX_TEXT_LENGTH=700,
    )
    config.retry_policy.return_value = RetryPolicy(max_attempts=2)
    mock_genai_client.respond([{"originalId": "1", "isAI": True, "title": "Agents"}])
    sleep = SleepRecorder()

    pipeline = ClassificationPipeline.from_config(config, client=mock_genai_client, sleep=sleep)
    results = pipeline.run(make_tweets(1), categories)

    assert pipeline.scheduler.policy.max_attempts == 2
    assert [r.title for r in results] == ["Agents"]
    assert mock_genai_client.models.generate_content.call_args.kwargs['model'] == 'gemini-test'


def test_process_bookmarks_with_gemini(mock_genai_client, categories):
    config = Mock(
        GEMINI_API_KEY='key',
        GEMINI_MODEL='gemini-test',
        GEMINI_TEMPERATURE=0.1,
        GEMINI_MAX_OUTPUT_TOKENS=100,
        CLASSIFIER_TIMEOUT_SECONDS=5,
        MAX_TEXT_LENGTH=700,
    )
    config.retry_policy.return_value = RetryPolicy()
    mock_genai_client.respond([{"originalId": "9", "isAI": False}])

    results = process_bookmarks_with_gemini(
        [{"id_str": "9", "full_text": "Holiday pictures"}],
        categories,
        config=config,
        client=mock_genai_client,
    )

    assert len(results) == 1
    assert results[0].is_ai is False
    assert results[0].is_fallback is False


def test_tweet_without_id_gets_generated_id(make_pipeline, categories):
    events = []
    results = make_pipeline(FakeClassifier()).run(
        [{"full_text": "Agents everywhere"}], categories, on_log=lambda m, s: events.append((m, s))
    )

    assert len(results) == 1
    generated = results[0].original_id
    assert generated
    assert (f"⚠️ Tweet without id, using generated id {generated}", 'warning') in events
