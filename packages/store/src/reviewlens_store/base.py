"""Abstract store interface.

Any storage backend (JSON file, SQLite, ...) implements this interface. The
CLI depends on BaseStore — not on a concrete backend — so backends are
swappable without touching CLI code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from reviewlens_store.models import ScoreRecord

DEFAULT_MAX_RECORDS = 200


class BaseStore(ABC):
    """Bounded, most-recent-first history of review scores."""

    @abstractmethod
    def save(self, record: ScoreRecord) -> None:
        """Persist a score record, dropping the oldest beyond the store's cap."""

    @abstractmethod
    def list_scores(self, limit: int = 30, repo: str | None = None) -> list[ScoreRecord]:
        """Return up to ``limit`` records, most recent first, optionally for one repo.

        Returns an empty list if no records exist — never raises.
        """

    @abstractmethod
    def clear(self) -> None:
        """Delete every stored record."""

    def last(self, repo: str | None = None) -> ScoreRecord | None:
        records = self.list_scores(limit=1, repo=repo)
        return records[0] if records else None

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional — subclasses that need cleanup should override this.
        Default is a no-op so callers can always call close() safely.
        """
