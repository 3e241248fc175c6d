"""Tests for reviewlens-store implementations."""

from __future__ import annotations

import json

import pytest

from reviewlens_store.json_file import JsonFileStore
from reviewlens_store.models import ScoreRecord
from reviewlens_store.noop import NoOpStore
from reviewlens_store.sqlite import SQLiteStore


def _make_record(n=0, repo="owner/repo", score=80, label=None):
    return ScoreRecord(
        id=f"id-{n}",
        timestamp=f"2026-01-01T00:00:{n:02d}+00:00",
        repo=repo,
        branch="main",
        model="qwen2.5-coder:7b",
        profile="general",
        score=score,
        correctness=93,
        security=94,
        maintainability=96,
        performance=97,
        finding_counts={"critical": 0, "high": 2, "medium": 0, "low": 0, "info": 1},
        label=label,
    )


# ---------------------------------------------------------------------------
# NoOpStore
# ---------------------------------------------------------------------------


class TestNoOpStore:
    def test_save_does_not_raise(self):
        NoOpStore().save(_make_record())

    def test_list_scores_returns_empty(self):
        store = NoOpStore()
        store.save(_make_record())
        assert store.list_scores() == []
        assert store.last() is None


# ---------------------------------------------------------------------------
# Shared behaviour of the persistent backends
# ---------------------------------------------------------------------------


@pytest.fixture(params=["json", "sqlite"])
def make_store(request, tmp_path):
    created = []

    def _make(max_records=200):
        if request.param == "json":
            store = JsonFileStore(path=str(tmp_path / "scores.json"), max_records=max_records)
        else:
            store = SQLiteStore(db_path=str(tmp_path / "scores.db"), max_records=max_records)
        created.append(store)
        return store

    yield _make
    for store in created:
        store.close()


class TestPersistentStores:
    def test_save_and_list(self, make_store):
        store = make_store()
        record = _make_record(label="src/")
        store.save(record)
        assert store.list_scores() == [record]

    def test_most_recent_first(self, make_store):
        store = make_store()
        for n in range(3):
            store.save(_make_record(n))
        assert [r.id for r in store.list_scores()] == ["id-2", "id-1", "id-0"]
        assert store.last().id == "id-2"

    def test_limit(self, make_store):
        store = make_store()
        for n in range(5):
            store.save(_make_record(n))
        assert [r.id for r in store.list_scores(limit=2)] == ["id-4", "id-3"]

    def test_filter_by_repo(self, make_store):
        store = make_store()
        store.save(_make_record(0, repo="a/one"))
        store.save(_make_record(1, repo="b/two"))
        assert [r.id for r in store.list_scores(repo="a/one")] == ["id-0"]
        assert store.list_scores(repo="c/none") == []

    def test_oldest_dropped_beyond_cap(self, make_store):
        store = make_store(max_records=3)
        for n in range(5):
            store.save(_make_record(n))
        assert [r.id for r in store.list_scores()] == ["id-4", "id-3", "id-2"]

    def test_persists_across_instances(self, make_store):
        first = make_store()
        first.save(_make_record(7))
        first.close()
        assert make_store().last().id == "id-7"

    def test_clear(self, make_store):
        store = make_store()
        store.save(_make_record())
        store.clear()
        assert store.list_scores() == []

    def test_finding_counts_round_trip(self, make_store):
        store = make_store()
        store.save(_make_record())
        assert store.last().finding_counts == {"critical": 0, "high": 2, "medium": 0, "low": 0, "info": 1}


# ---------------------------------------------------------------------------
# JsonFileStore specifics
# ---------------------------------------------------------------------------


class TestJsonFileStore:
    def test_file_is_a_json_array(self, tmp_path):
        path = tmp_path / "scores.json"
        JsonFileStore(path=str(path)).save(_make_record())
        data = json.loads(path.read_text())
        assert isinstance(data, list)
        assert data[0]["id"] == "id-0"

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "scores.json"
        path.write_text("{not json")
        assert JsonFileStore(path=str(path)).list_scores() == []

    def test_write_failure_is_logged_not_raised(self, tmp_path, mocker, caplog):
        store = JsonFileStore(path=str(tmp_path / "scores.json"))
        mocker.patch("pathlib.Path.write_text", side_effect=OSError("disk full"))
        store.save(_make_record())
        assert "write" in caplog.text and "disk full" in caplog.text
        assert store.last().id == "id-0"

    def test_missing_fields_get_defaults(self, tmp_path):
        path = tmp_path / "scores.json"
        path.write_text(json.dumps([{"id": "x", "score": 55, "finding_counts": {"high": 1}}]))
        record = JsonFileStore(path=str(path)).last()
        assert record.score == 55
        assert record.profile == "general"
        assert record.finding_counts["high"] == 1
        assert record.finding_counts["critical"] == 0
