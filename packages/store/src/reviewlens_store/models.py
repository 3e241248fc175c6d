"""Score history data models.

Decoupled from reviewlens_core so the store layer can be used independently
and reviewlens_core has no knowledge of persistence concerns.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

SEVERITIES = ("critical", "high", "medium", "low", "info")


@dataclass
class ScoreRecord:
    """One review's quality score, persisted to the store.

    Created by the CLI from the flat dict returned by
    reviewlens_core.scoring.score_record_fields().
    """

    id: str
    timestamp: str  # ISO-8601 UTC timestamp
    repo: str
    branch: str
    model: str
    profile: str
    score: int
    correctness: int
    security: int
    maintainability: int
    performance: int
    finding_counts: dict[str, int] = field(default_factory=lambda: {s: 0 for s in SEVERITIES})
    label: str | None = None  # file path, folder or branch shown in history

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> ScoreRecord:
        counts = d.get("finding_counts") or {}
        return cls(
            id=d.get("id", ""),
            timestamp=d.get("timestamp", ""),
            repo=d.get("repo", ""),
            branch=d.get("branch", ""),
            model=d.get("model", ""),
            profile=d.get("profile", "") or "general",
            score=d.get("score", 0),
            correctness=d.get("correctness", 0),
            security=d.get("security", 0),
            maintainability=d.get("maintainability", 0),
            performance=d.get("performance", 0),
            finding_counts={s: int(counts.get(s, 0)) for s in SEVERITIES},
            label=d.get("label"),
        )
