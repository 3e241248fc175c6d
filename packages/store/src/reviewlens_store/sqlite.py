"""SQLiteStore — local file-based score history.

Indexed queries by repo stay fast as the history grows, and the file can be
shared between CI jobs as a cache.

Schema:
  scores — one row per review score; finding counts are a JSON column so
           reads never need a JOIN.
"""

from __future__ import annotations

import json
import sqlite3

from reviewlens_store.base import DEFAULT_MAX_RECORDS, BaseStore
from reviewlens_store.models import SEVERITIES, ScoreRecord

_SCHEMA = """
CREATE TABLE IF NOT EXISTS scores (
    seq              INTEGER PRIMARY KEY AUTOINCREMENT,
    id               TEXT NOT NULL,
    timestamp        TEXT,
    repo             TEXT,
    branch           TEXT,
    model            TEXT,
    profile          TEXT,
    score            INTEGER,
    correctness      INTEGER,
    security         INTEGER,
    maintainability  INTEGER,
    performance      INTEGER,
    finding_counts   TEXT DEFAULT '{}',
    label            TEXT
);
CREATE INDEX IF NOT EXISTS idx_scores_repo ON scores (repo);
"""


class SQLiteStore(BaseStore):
    """Stores score history in a local SQLite database file.

    The database file path defaults to `.reviewlens.db` in the current working
    directory. Configure via .reviewlens.yml: `store_path: /path/to/file.db`.
    """

    def __init__(self, db_path: str = ".reviewlens.db", max_records: int = DEFAULT_MAX_RECORDS):
        self._max_records = max_records
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def save(self, record: ScoreRecord) -> None:
        self._conn.execute(
            """
            INSERT INTO scores
              (id, timestamp, repo, branch, model, profile, score, correctness,
               security, maintainability, performance, finding_counts, label)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.timestamp,
                record.repo,
                record.branch,
                record.model,
                record.profile,
                record.score,
                record.correctness,
                record.security,
                record.maintainability,
                record.performance,
                json.dumps(record.finding_counts),
                record.label,
            ),
        )
        # Keep only the newest max_records rows.
        self._conn.execute(
            "DELETE FROM scores WHERE seq NOT IN (SELECT seq FROM scores ORDER BY seq DESC LIMIT ?)",
            (self._max_records,),
        )
        self._conn.commit()

    def list_scores(self, limit: int = 30, repo: str | None = None) -> list[ScoreRecord]:
        if repo is not None:
            rows = self._conn.execute(
                "SELECT * FROM scores WHERE repo=? ORDER BY seq DESC LIMIT ?",
                (repo, limit),
            ).fetchall()
        else:
            rows = self._conn.execute("SELECT * FROM scores ORDER BY seq DESC LIMIT ?", (limit,)).fetchall()
        return [self._row_to_record(r) for r in rows]

    def clear(self) -> None:
        self._conn.execute("DELETE FROM scores")
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> ScoreRecord:
        counts = json.loads(row["finding_counts"] or "{}")
        return ScoreRecord(
            id=row["id"],
            timestamp=row["timestamp"] or "",
            repo=row["repo"] or "",
            branch=row["branch"] or "",
            model=row["model"] or "",
            profile=row["profile"] or "general",
            score=row["score"] or 0,
            correctness=row["correctness"] or 0,
            security=row["security"] or 0,
            maintainability=row["maintainability"] or 0,
            performance=row["performance"] or 0,
            finding_counts={s: int(counts.get(s, 0)) for s in SEVERITIES},
            label=row["label"],
        )
