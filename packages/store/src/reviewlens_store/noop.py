"""No-op store — the default when no store is configured.

Using a NoOpStore rather than None lets the CLI always call store.save()
without conditional checks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from reviewlens_store.base import BaseStore

if TYPE_CHECKING:
    from reviewlens_store.models import ScoreRecord


class NoOpStore(BaseStore):
    """Silently discards all records — zero configuration required."""

    def save(self, record: ScoreRecord) -> None:
        pass  # intentional no-op

    def list_scores(self, limit: int = 30, repo: str | None = None) -> list[ScoreRecord]:
        return []

    def clear(self) -> None:
        pass
