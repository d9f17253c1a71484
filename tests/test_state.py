"""Unit tests for checkpoint persistence."""

import json
import os

import pytest

from docmirror.models import CrawlState
from docmirror.state import CrawlStateStore


@pytest.fixture
def store(tmp_path):
    return CrawlStateStore(str(tmp_path / "crawler_state.json"))


def test_round_trip(store):
    state = CrawlState(
        visited_urls=frozenset({"https://a/1", "https://a/2"}),
        processed_count=7,
        error_count=2,
        timestamp="2026-01-01T00:00:00+00:00",
    )
    assert store.save(state)
    assert store.load() == state


def test_file_format(store):
    store.save(CrawlState(frozenset({"https://a/2", "https://a/1"}), 3, 1, "2026-01-01T00:00:00+00:00"))
    with open(store.path, encoding="utf-8") as f:
        data = json.load(f)
    assert data == {
        "visitedUrls": ["https://a/1", "https://a/2"],
        "processedCount": 3,
        "errorCount": 1,
        "timestamp": "2026-01-01T00:00:00+00:00",
    }


def test_last_write_wins(store):
    store.save(CrawlState(frozenset({"https://a/1"}), 1, 0))
    store.save(CrawlState(frozenset({"https://a/9"}), 9, 4))
    loaded = store.load()
    assert loaded.visited_urls == frozenset({"https://a/9"})
    assert loaded.processed_count == 9
    assert loaded.error_count == 4


def test_no_temporary_files_left(store, tmp_path):
    store.save(CrawlState(frozenset({"https://a/1"}), 1, 0))
    assert os.listdir(tmp_path) == ["crawler_state.json"]


def test_missing_checkpoint_is_absent(store):
    assert store.load() is None


def test_corrupt_checkpoint_is_absent(store):
    with open(store.path, "w", encoding="utf-8") as f:
        f.write("{not json")
    assert store.load() is None


def test_checkpoint_with_wrong_types_is_absent(store):
    with open(store.path, "w", encoding="utf-8") as f:
        json.dump({"visitedUrls": "https://a/1", "processedCount": 1, "errorCount": 0}, f)
    assert store.load() is None


def test_checkpoint_that_is_not_an_object_is_absent(store):
    with open(store.path, "w", encoding="utf-8") as f:
        json.dump(["https://a/1"], f)
    assert store.load() is None


def test_save_failure_returns_false(tmp_path):
    (tmp_path / "blocker").write_text("file")
    store = CrawlStateStore(str(tmp_path / "blocker" / "crawler_state.json"))
    assert store.save(CrawlState()) is False


def test_checkpoint_with_boolean_counters_is_absent(store):
    with open(store.path, "w", encoding="utf-8") as f:
        json.dump({"visitedUrls": ["https://a/1"], "processedCount": True, "errorCount": False}, f)
    assert store.load() is None
