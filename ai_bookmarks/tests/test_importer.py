import json
from unittest.mock import Mock

import pytest

from ai_bookmarks.core.importer import (
    BookmarkImporter,
    ImportSummary,
    load_tweets,
    normalize_categories,
    result_to_bookmark,
)
from ai_bookmarks.core.models import Bookmark, ClassificationResult


@pytest.fixture
def tweets():
    return [
        {"id_str": "1", "full_text": "New agent framework released"},
        {"id_str": "2", "full_text": "Lunch photos"},
        {"id_str": "3", "full_text": "RAG tutorial"},
        {"full_text": "No id at all"},
    ]


@pytest.fixture
def pipeline():
    pipeline = Mock()
    pipeline.run.return_value = [
        ClassificationResult(
            original_id="1",
            is_ai=True,
            title="Agents",
            description="New framework",
            categories=["Agents", "Invented"],
            external_links=["https://github.com/a/b"],
        ),
        ClassificationResult(original_id="2", is_ai=False),
    ]
    return pipeline


def test_load_tweets_shapes(tweets):
    assert load_tweets(tweets) == tweets
    assert load_tweets({"bookmarks": tweets}) == tweets
    assert load_tweets({"meta": {"count": 4}, "data": tweets}) == tweets
    assert load_tweets([tweets[0], "junk", 3]) == [tweets[0]]


def test_load_tweets_from_file(tmp_path, tweets):
    path = tmp_path / "export.json"
    path.write_text(json.dumps({"bookmarks": tweets}), encoding='utf-8')
    assert load_tweets(str(path)) == tweets
    assert load_tweets(path) == tweets


@pytest.mark.parametrize("data", [
    {"backupVersion": 1, "bookmarks": [], "categories": []},
    {"message": "nothing here"},
    42,
])
def test_load_tweets_rejects(data):
    with pytest.raises(ValueError):
        load_tweets(data)


def test_load_tweets_missing_file(tmp_path):
    with pytest.raises(ValueError, match="Cannot read export file"):
        load_tweets(str(tmp_path / "missing.json"))
    with pytest.raises(ValueError, match="Cannot read export file"):
        load_tweets("just a string")


def test_load_tweets_invalid_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding='utf-8')
    with pytest.raises(ValueError, match="not valid JSON"):
        load_tweets(path)


def test_filter_new_skips_known_and_deleted(pipeline, categories, tweets):
    existing = [Bookmark(id="1abc", title="t", description="d", original_link="https://twitter.com/i/web/status/1")]
    importer = BookmarkImporter(pipeline, categories, existing_bookmarks=existing, deleted_ids=[3])

    unique, skipped = importer.filter_new(tweets)

    assert [t["id_str"] for t in unique] == ["2"]
    assert skipped == 3


def test_run_builds_bookmarks(pipeline, categories, tweets):
    importer = BookmarkImporter(pipeline, categories)

    summary = importer.run(tweets)

    assert pipeline.run.call_args.args[0] == tweets[:3]
    assert summary.added == 1
    assert summary.skipped == 1
    assert summary.rejected == 1
    assert summary.rejected_tweets == [tweets[1]]

    bookmark = summary.bookmarks[0]
    assert bookmark.id.startswith("1")
    assert len(bookmark.id) == 10
    assert bookmark.original_link == "https://twitter.com/i/web/status/1"
    assert bookmark.original_id == "1"
    assert bookmark.categories == ["Agents"]
    assert bookmark.external_links == ["https://github.com/a/b"]
    assert bookmark.created_at > 0


def test_run_with_nothing_new_skips_pipeline(pipeline, categories, tweets):
    importer = BookmarkImporter(pipeline, categories, deleted_ids=["1", "2", "3"])

    summary = importer.run(tweets)

    pipeline.run.assert_not_called()
    assert summary == ImportSummary(skipped=4)


def test_run_passes_callbacks(pipeline, categories, tweets):
    on_progress, on_log, token = Mock(), Mock(), Mock()
    BookmarkImporter(pipeline, categories).run(tweets, on_progress, on_log, token)
    pipeline.run.assert_called_once_with(tweets[:3], categories, on_progress, on_log, token)


@pytest.mark.parametrize("given, expected", [
    (["RAG", "Agents"], ["RAG", "Agents"]),
    (["RAG", "RAG"], ["RAG"]),
    (["Made up"], ["Altres"]),
    ([], ["Altres"]),
    (None, ["Altres"]),
])
def test_normalize_categories(categories, given, expected):
    assert normalize_categories(given, categories) == expected


def test_result_to_bookmark_defaults(categories):
    bookmark = result_to_bookmark(ClassificationResult(original_id="77", is_ai=True), categories, created_at=5)
    assert bookmark.title == "Sense títol"
    assert bookmark.description == "Sense descripció"
    assert bookmark.categories == ["Altres"]
    assert bookmark.created_at == 5


def test_bookmark_ids_are_unique(categories):
    result = ClassificationResult(original_id="77", is_ai=True)
    ids = {result_to_bookmark(result, categories).id for _ in range(20)}
    assert len(ids) == 20


def test_summary_to_dict(categories):
    bookmark = result_to_bookmark(ClassificationResult(original_id="5", is_ai=True, title="T"), categories)
    data = ImportSummary(added=1, bookmarks=[bookmark]).to_dict()
    assert data['added'] == 1
    assert data['bookmarks'][0]['originalLink'].endswith('/5')
