"""Pass/block verdict for a review against a severity threshold.

The threshold is inclusive: ``high`` blocks on both critical and high
findings. Used by the pre-commit guard and by ``review --fail-on-block``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from reviewlens_core.diff_index import DiffIndex
from reviewlens_core.findings import (
    SEVERITY_BADGES,
    SEVERITY_ORDER,
    ReviewFinding,
    Severity,
    SeverityTally,
    extract_findings,
)

# Phrase the review prompt asks the model to use when nothing is wrong.
NO_ISSUES_SENTINEL = "found no significant issues"


@dataclass(frozen=True)
class SeverityAssessment:
    passed: bool
    threshold: Severity
    blocking_findings: tuple[ReviewFinding, ...] = ()
    findings: tuple[ReviewFinding, ...] = ()
    counts: SeverityTally = field(default_factory=SeverityTally)


def severity_rank(severity: str) -> int:
    try:
        return SEVERITY_ORDER.index(severity)
    except ValueError:
        raise ValueError(
            f"Unknown severity {severity!r}. Choose one of: {', '.join(SEVERITY_ORDER)}."
        ) from None


def assess(findings: list[ReviewFinding], threshold: Severity, review_text: str = "") -> SeverityAssessment:
    """Compare ``findings`` against ``threshold``.

    If ``review_text`` contains the no-issues sentinel the review passes
    outright: anything extracted from the surrounding prose is noise.
    """
    limit = severity_rank(threshold)
    findings = tuple(findings)
    counts = SeverityTally.from_findings(findings)

    if NO_ISSUES_SENTINEL in (review_text or "").lower():
        return SeverityAssessment(passed=True, threshold=threshold, findings=findings, counts=counts)

    blocking = tuple(f for f in findings if severity_rank(f.severity) <= limit)
    return SeverityAssessment(
        passed=not blocking,
        threshold=threshold,
        blocking_findings=blocking,
        findings=findings,
        counts=counts,
    )


def assess_review(review_text: str, diff: str | DiffIndex | None, threshold: Severity) -> SeverityAssessment:
    return assess(extract_findings(review_text, diff), threshold, review_text)


def format_assessment_summary(assessment: SeverityAssessment) -> str:
    if assessment.passed:
        return "No findings at or above the configured severity threshold."

    lines = [
        f"Found {len(assessment.blocking_findings)} finding(s) at or above "
        f'"{assessment.threshold}" severity:',
        "",
    ]
    counts = assessment.counts.as_dict()
    for severity in SEVERITY_ORDER:
        if counts[severity]:
            lines.append(f"  {SEVERITY_BADGES[severity]} {severity}: {counts[severity]}")
    return "\n".join(lines)
