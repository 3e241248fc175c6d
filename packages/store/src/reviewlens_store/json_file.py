"""JsonFileStore — score history in a single local JSON file.

No database and no native dependencies: the file holds a JSON array of score
records, newest first, truncated to ``max_records`` on every save. The whole
file is rewritten each time, which is fine at a few hundred records.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from reviewlens_store.base import DEFAULT_MAX_RECORDS, BaseStore
from reviewlens_store.models import ScoreRecord

logger = logging.getLogger(__name__)

DEFAULT_PATH = ".reviewlens-scores.json"


class JsonFileStore(BaseStore):
    def __init__(self, path: str = DEFAULT_PATH, max_records: int = DEFAULT_MAX_RECORDS):
        self._path = Path(path)
        self._max_records = max_records
        self._records: list[dict] = self._load()

    def _load(self) -> list[dict]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read score history %s (%s); starting empty.", self._path, e)
            return []
        return [r for r in data if isinstance(r, dict)] if isinstance(data, list) else []

    def _write(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(self._records, indent=2), encoding="utf-8")
        except OSError as e:
            # Records stay in memory for this run even if the write fails.
            logger.warning("JsonFileStore write to %s failed: %s", self._path, e)

    def save(self, record: ScoreRecord) -> None:
        self._records.insert(0, record.to_dict())
        del self._records[self._max_records :]
        self._write()

    def list_scores(self, limit: int = 30, repo: str | None = None) -> list[ScoreRecord]:
        records = [ScoreRecord.from_dict(r) for r in self._records]
        if repo is not None:
            records = [r for r in records if r.repo == repo]
        return records[:limit]

    def clear(self) -> None:
        self._records = []
        self._write()
