"""Tests for rendering findings as pull-request review comments."""

from reviewlens_core.comments import (
    SUMMARY_MARKER,
    build_inline_comments,
    determine_event,
    format_finding_as_comment,
    format_findings_as_summary,
)
from reviewlens_core.diff_index import DiffIndex
from reviewlens_core.findings import ReviewFinding
from reviewlens_core.scoring import ScoreResult

DIFF = "\n".join(
    [
        "diff --git a/src/foo.py b/src/foo.py",
        "--- a/src/foo.py",
        "+++ b/src/foo.py",
        "@@ -1,2 +1,3 @@",
        " line1",
        "+new line",
        " line2",
    ]
)


class TestDetermineEvent:
    def test_approve_when_empty(self):
        assert determine_event([]) == "APPROVE"

    def test_request_changes_on_high(self):
        findings = [ReviewFinding("low", "a"), ReviewFinding("high", "b")]
        assert determine_event(findings) == "REQUEST_CHANGES"

    def test_comment_on_lesser_findings(self):
        assert determine_event([ReviewFinding("medium", "a")]) == "COMMENT"


def test_comment_body_includes_suggestion_block():
    body = format_finding_as_comment(ReviewFinding("high", "Null deref", "src/foo.py", 2, suggestion="if x:\n    y()"))
    assert "**High**" in body
    assert "Null deref" in body
    assert "```suggestion\nif x:\n    y()\n```" in body


def test_comment_body_without_suggestion():
    assert "```" not in format_finding_as_comment(ReviewFinding("low", "Rename"))


class TestSummary:
    def test_no_findings(self):
        body = format_findings_as_summary([], "gpt-4o")
        assert "No significant issues" in body
        assert "`gpt-4o`" in body
        assert body.endswith(SUMMARY_MARKER)

    def test_counts_and_score(self):
        findings = [ReviewFinding("high", "a"), ReviewFinding("high", "b", "src/foo.py")]
        score = ScoreResult(score=80, correctness=93, security=94, maintainability=96, performance=97)
        body = format_findings_as_summary(findings, "m", score=score)
        assert "**Quality score:** 80/100" in body
        assert "High | 2 |" in body
        assert "1 finding(s) could not be tied to a changed file" in body
        assert SUMMARY_MARKER in body


class TestBuildInlineComments:
    def test_anchored_finding_becomes_inline_comment(self):
        findings = [ReviewFinding("medium", "Magic number", "src/foo.py", 2)]
        comments = build_inline_comments(findings, DiffIndex.build(DIFF))
        assert len(comments) == 1
        assert comments[0]["path"] == "src/foo.py"
        assert comments[0]["position"] == 2
        assert comments[0]["line"] == 2
        assert comments[0]["code"] == "new line"
        assert "Magic number" in comments[0]["body"]

    def test_line_outside_diff_skipped(self):
        findings = [ReviewFinding("medium", "x", "src/foo.py", 99)]
        assert build_inline_comments(findings, DiffIndex.build(DIFF)) == []

    def test_unanchored_findings_skipped(self):
        findings = [ReviewFinding("medium", "x"), ReviewFinding("low", "y", "src/foo.py")]
        assert build_inline_comments(findings, DiffIndex.build(DIFF)) == []

    def test_context_line_is_commentable(self):
        # GitHub accepts comments on any line shown in the diff.
        findings = [ReviewFinding("low", "x", "src/foo.py", 3)]
        comments = build_inline_comments(findings, DiffIndex.build(DIFF))
        assert len(comments) == 1
        assert comments[0]["position"] == 3
        assert comments[0]["code"] == "line2"
