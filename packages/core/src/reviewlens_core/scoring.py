"""Deterministic quality score for one review.

The score is a fixed linear deduction over the severity tally, so identical
tallies give identical numbers on every machine and with every provider. That
is what makes score history comparable over time.

    deduction = 20·critical + 10·high + 5·medium + 2·low     (info is free)
    score     = clamp(100 − deduction)
    sub-score = clamp(100 − round(deduction · weight))
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from reviewlens_core.findings import SeverityTally

SEVERITY_DEDUCTIONS: dict[str, int] = {"critical": 20, "high": 10, "medium": 5, "low": 2, "info": 0}

SUB_SCORE_WEIGHTS: dict[str, Decimal] = {
    "correctness": Decimal("0.35"),
    "security": Decimal("0.30"),
    "maintainability": Decimal("0.20"),
    "performance": Decimal("0.15"),
}


@dataclass(frozen=True)
class ScoreResult:
    score: int
    correctness: int
    security: int
    maintainability: int
    performance: int

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def _clamp(value: int) -> int:
    return max(0, min(100, value))


def _round_half_up(value: Decimal) -> int:
    # Decimal keeps 30 × 0.35 at exactly 10.5, where a float would give 10.4999…
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def compute_deduction(tally: SeverityTally) -> int:
    counts = tally.as_dict()
    return sum(SEVERITY_DEDUCTIONS[severity] * counts[severity] for severity in SEVERITY_DEDUCTIONS)


def compute_score(tally: SeverityTally) -> ScoreResult:
    deduction = compute_deduction(tally)
    subs = {name: _clamp(100 - _round_half_up(deduction * weight)) for name, weight in SUB_SCORE_WEIGHTS.items()}
    return ScoreResult(score=_clamp(100 - deduction), **subs)


def score_label(score: int) -> str:
    if score >= 80:
        return "good"
    if score >= 60:
        return "fair"
    return "poor"


def score_record_fields(
    result: ScoreResult,
    tally: SeverityTally,
    model: str,
    profile: str,
    repo: str = "",
    branch: str = "",
    label: str | None = None,
    timestamp: str | None = None,
) -> dict:
    """Build the flat history record handed to the persistence layer.

    A plain dict keeps reviewlens_core free of any store dependency; the CLI
    turns it into a reviewlens_store ScoreRecord.
    """
    return {
        "id": uuid.uuid4().hex,
        "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
        "repo": repo,
        "branch": branch,
        "model": model,
        "profile": profile,
        **result.as_dict(),
        "finding_counts": tally.as_dict(),
        "label": label,
    }
