"""Render findings as pull-request review comments.

Pure formatting: the GitHub adapter in reviewlens_core.gh does the posting.
Findings anchored to a file and a line that is part of the diff become inline
comments; everything else is only reflected in the summary body.
"""

from __future__ import annotations

import logging

from reviewlens_core.diff_index import DiffIndex, get_diff_positions, get_patch_line_content
from reviewlens_core.findings import SEVERITY_BADGES, SEVERITY_ORDER, ReviewFinding, SeverityTally
from reviewlens_core.scoring import ScoreResult

logger = logging.getLogger(__name__)

SUMMARY_MARKER = "<!-- reviewlens-summary -->"


def determine_event(findings: list[ReviewFinding]) -> str:
    """Choose the GitHub review event based on the highest severity present."""
    if not findings:
        return "APPROVE"
    if {f.severity for f in findings} & {"critical", "high"}:
        return "REQUEST_CHANGES"
    return "COMMENT"


def format_finding_as_comment(finding: ReviewFinding) -> str:
    body = f"{SEVERITY_BADGES[finding.severity]} **{finding.severity.capitalize()}**\n\n{finding.message}"
    if finding.suggestion:
        body += f"\n\n```suggestion\n{finding.suggestion}\n```"
    return body


def format_findings_as_summary(findings: list[ReviewFinding], model: str, score: ScoreResult | None = None) -> str:
    """Build the top-level review body posted alongside any inline comments."""
    footer = f"> Reviewed by reviewlens using `{model}`"
    if not findings:
        return f"✅ **AI Code Review**: No significant issues found.\n\n{footer}\n{SUMMARY_MARKER}"

    counts = SeverityTally.from_findings(findings).as_dict()
    lines = ["## AI Code Review Summary\n"]
    if score is not None:
        lines.append(f"**Quality score:** {score.score}/100\n")
    lines.append("| Severity | Count |")
    lines.append("|----------|-------|")
    for severity in SEVERITY_ORDER:
        if counts[severity]:
            lines.append(f"| {SEVERITY_BADGES[severity]} {severity.capitalize()} | {counts[severity]} |")

    unanchored = [f for f in findings if f.file is None]
    if unanchored:
        lines.append(f"\n_{len(unanchored)} finding(s) could not be tied to a changed file._")

    lines.append(f"\n{footer}")
    lines.append(SUMMARY_MARKER)
    return "\n".join(lines)


def build_inline_comments(findings: list[ReviewFinding], diff_index: DiffIndex) -> list[dict]:
    """Return GitHub review comment payloads for findings that can be placed inline."""
    positions_by_file: dict[str, dict[int, int]] = {}
    comments = []
    for finding in findings:
        if finding.file is None or finding.line is None:
            continue
        patch = diff_index.patches.get(finding.file, "")
        if finding.file not in positions_by_file:
            positions_by_file[finding.file] = get_diff_positions(patch)
        position = positions_by_file[finding.file].get(finding.line)
        if position is None:
            logger.debug("Skipping inline comment for %s:%d (not in diff positions)", finding.file, finding.line)
            continue
        comments.append(
            {
                "path": finding.file,
                "position": position,
                "line": finding.line,
                "severity": finding.severity,
                "body": format_finding_as_comment(finding),
                "code": get_patch_line_content(patch, finding.line),
            }
        )
    return comments
