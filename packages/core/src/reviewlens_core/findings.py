"""Heuristic extraction of structured findings from review text.

Models are asked for markdown but follow no fixed grammar, so this module
works from boundary and keyword heuristics kept in ordered rule tables:

    extract_findings()
        segment()                → one section per finding
        classify_severity()      → SEVERITY_RULES, first tier wins
        resolve_file_reference() → FILE_REFERENCE_RULES, checked against DiffIndex
        extract_suggestion()     → fenced block after a suggestion phrase

Nothing here raises on odd input. Unstructured text becomes a single finding,
and a file reference that cannot be resolved leaves ``file`` unset.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from typing import Iterable, Literal

from reviewlens_core.diff_index import DiffIndex

logger = logging.getLogger(__name__)

Severity = Literal["critical", "high", "medium", "low", "info"]

# Most severe first. The index is the rank used by the severity gate.
SEVERITY_ORDER: tuple[Severity, ...] = ("critical", "high", "medium", "low", "info")

SEVERITY_BADGES: dict[str, str] = {
    "critical": "\U0001F534",
    "high": "\U0001F7E0",
    "medium": "\U0001F7E1",
    "low": "\U0001F7E2",
    "info": "ℹ️",
}


@dataclass(frozen=True)
class ReviewFinding:
    severity: Severity
    message: str
    file: str | None = None
    line: int | None = None
    suggestion: str | None = None

    def __post_init__(self):
        if self.severity not in SEVERITY_ORDER:
            raise ValueError(f"Unknown severity: {self.severity!r}")
        if self.line is not None and self.file is None:
            raise ValueError("A finding cannot carry a line without a file.")

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SeverityTally:
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    info: int = 0

    @classmethod
    def from_findings(cls, findings: Iterable[ReviewFinding]) -> SeverityTally:
        counts = {severity: 0 for severity in SEVERITY_ORDER}
        for finding in findings:
            counts[finding.severity] += 1
        return cls(**counts)

    @property
    def total(self) -> int:
        return self.critical + self.high + self.medium + self.low + self.info

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


# ------------------------------------------------------------------ #
# Rule tables                                                          #
# ------------------------------------------------------------------ #

SECTION_BOUNDARIES: tuple[re.Pattern, ...] = (
    re.compile(r"^#{1,4}\s+\d+\.?\s"),  # ### 1. Finding
    re.compile(r"^#{1,4}\s+\*\*"),  # ### **Finding**
    re.compile(r"^\d+\.\s+\*\*"),  # 1. **Finding**
    re.compile(r"^-\s+\*\*(?:critical|high|medium|low|bug|security|performance|issue)", re.IGNORECASE),
)

# Ranked so that security and crash language outranks a stray "error" or
# "style" mention elsewhere in the same section.
SEVERITY_RULES: tuple[tuple[Severity, re.Pattern], ...] = (
    ("critical", re.compile(r"\b(?:critical|vulnerability|injection|xss|csrf|rce)\b", re.IGNORECASE)),
    ("high", re.compile(r"\b(?:high|severe|bug|error|crash|security)\b", re.IGNORECASE)),
    ("medium", re.compile(r"\b(?:medium|moderate|warning|performance|inefficient)\b", re.IGNORECASE)),
    ("low", re.compile(r"\b(?:low|minor|nitpick|style|naming|readability)\b", re.IGNORECASE)),
)

_PATH = r"[^`*\s][^`*]*?\.[A-Za-z]{1,5}"

# (pattern, whether the match itself carries the line number)
FILE_REFERENCE_RULES: tuple[tuple[re.Pattern, bool], ...] = (
    (re.compile(rf"`(?P<path>{_PATH}):(?P<line>\d+)`"), True),  # `src/x.ts:42`
    (re.compile(rf"`(?P<path>{_PATH})`"), False),  # `src/x.ts` ... line 42
    (re.compile(rf"\*\*(?P<path>{_PATH})\*\*"), False),  # **src/x.ts**
)

_LINE_PHRASE_RE = re.compile(r"\bline\s+(\d+)", re.IGNORECASE)

_SUGGESTION_RE = re.compile(
    r"(?:suggest|recommend|instead|replace|change|fix|should be|could be|try)[^\n]*\n"
    r"[ \t]*```[\w+-]*[ \t]*\n(?P<code>[\s\S]*?)```",
    re.IGNORECASE,
)

_HEADING_PREFIX_RE = re.compile(r"^#{1,4}\s*\d*\.?\s*")


# ------------------------------------------------------------------ #
# Operations                                                           #
# ------------------------------------------------------------------ #


def segment(review_text: str) -> list[str]:
    """Split review text into one section per finding.

    Text before the first boundary forms its own section. When no boundary
    appears anywhere, the whole input is returned unchanged as one section.
    """
    lines = review_text.split("\n")
    if not any(rule.match(line) for line in lines for rule in SECTION_BOUNDARIES):
        return [review_text]

    sections: list[str] = []
    current: list[str] = []
    for line in lines:
        if current and any(rule.match(line) for rule in SECTION_BOUNDARIES):
            sections.append("\n".join(current))
            current = []
        current.append(line)
    if current:
        sections.append("\n".join(current))

    return [section for section in sections if section.strip()]


def classify_severity(section: str) -> Severity:
    for severity, pattern in SEVERITY_RULES:
        if pattern.search(section):
            return severity
    return "info"


def resolve_file_reference(section: str, diff_index: DiffIndex) -> tuple[str, int | None] | None:
    """Find the first file reference in ``section`` that exists in the diff.

    Returns ``(file, line)`` where line may be None, or None when nothing
    resolves. Every candidate of a rule is tried before falling to the next.
    """
    line_phrase = _LINE_PHRASE_RE.search(section)
    phrase_line = int(line_phrase.group(1)) if line_phrase else None

    for pattern, carries_line in FILE_REFERENCE_RULES:
        for match in pattern.finditer(section):
            resolved = diff_index.resolve(match.group("path"))
            if resolved is None:
                logger.debug("Unresolved file reference: %s", match.group("path"))
                continue
            line = int(match.group("line")) if carries_line else phrase_line
            return resolved, line
    return None


def extract_suggestion(section: str) -> str | None:
    """Return the fenced code block that follows a suggestion phrase, if any."""
    match = _SUGGESTION_RE.search(section)
    if not match:
        return None
    code = match.group("code")
    # The newline before the closing fence belongs to the fence, not the code.
    if code.endswith("\r\n"):
        code = code[:-2]
    elif code.endswith("\n"):
        code = code[:-1]
    return code or None


def clean_message(section: str) -> str:
    return _HEADING_PREFIX_RE.sub("", section.strip(), count=1).strip()


def extract_findings(review_text: str, diff: str | DiffIndex | None) -> list[ReviewFinding]:
    """Parse a complete (or partial) review into findings anchored to ``diff``."""
    diff_index = diff if isinstance(diff, DiffIndex) else DiffIndex.build(diff)

    findings: list[ReviewFinding] = []
    for section in segment(review_text or ""):
        message = clean_message(section)
        if not message:
            continue
        reference = resolve_file_reference(section, diff_index)
        file, line = reference if reference else (None, None)
        findings.append(
            ReviewFinding(
                severity=classify_severity(section),
                message=message,
                file=file,
                line=line,
                suggestion=extract_suggestion(section),
            )
        )

    logger.debug("Extracted %d finding(s) from %d chars of review text", len(findings), len(review_text or ""))
    return findings


# ------------------------------------------------------------------ #
# Quick tally                                                          #
# ------------------------------------------------------------------ #

# A keyword only counts when the same line also carries a severity marker,
# which keeps prose like "high traffic" from being tallied.
QUICK_TALLY_RULES: tuple[tuple[Severity, re.Pattern, re.Pattern], ...] = (
    ("critical", re.compile(r"\bcritical\b"), re.compile(r"severity|\U0001F534|\*\*")),
    ("high", re.compile(r"\bhigh\b"), re.compile(r"severity|\U0001F7E0|\*\*")),
    ("medium", re.compile(r"\b(?:medium|moderate)\b"), re.compile(r"severity|\U0001F7E1|\*\*")),
    ("low", re.compile(r"\b(?:low|minor)\b"), re.compile(r"severity|\U0001F7E2|\*\*")),
    ("info", re.compile(r"\b(?:info|note|informational)\b"), re.compile(r"severity|ℹ|\*\*")),
)

QUICK_TALLY_CAPS: dict[str, int] = {"critical": 10, "high": 10, "medium": 10, "low": 15, "info": 20}


def quick_tally(review_text: str) -> SeverityTally:
    """Count severity mentions line by line without segmenting the review.

    A cheaper, cruder estimator than ``SeverityTally.from_findings``. The two
    are independent and can disagree on the same text. Counts are capped so a
    long, repetitive response cannot crush the score on its own.
    """
    counts = {severity: 0 for severity in SEVERITY_ORDER}
    for line in (review_text or "").split("\n"):
        lower = line.lower()
        for severity, keyword, marker in QUICK_TALLY_RULES:
            if keyword.search(lower) and marker.search(lower):
                counts[severity] += 1
                break
    return SeverityTally(**{severity: min(count, QUICK_TALLY_CAPS[severity]) for severity, count in counts.items()})
