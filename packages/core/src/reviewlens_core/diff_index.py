"""Positional index over a unified diff.

The finding extractor needs to answer "is `foo.ts` part of this change, and
does line 42 exist in it?" for every finding without re-parsing the diff each
time. DiffIndex is built once per diff and is read-only afterwards.

Only lines added in the new version are indexed. Deleted lines have no
new-file line number, so a finding can never be anchored to one; context
lines are counted but not recorded.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping

logger = logging.getLogger(__name__)

_HUNK_RE = re.compile(
    r"^@@ -\d+(?:,(?P<old_count>\d+))? \+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@"
)
_NEW_FILE_RE = re.compile(r"^\+\+\+ (?:b/)?(?P<path>.+?)\s*$")

# Lines that end the current hunk without being hunk content themselves.
_FILE_HEADER_PREFIXES = ("diff --git ", "--- ", "+++ ", "index ", "Binary files ")


def _hunk_counts(match: re.Match) -> tuple[int, int, int]:
    """Return (new_start, old_count, new_count); an omitted count means 1."""
    old_count = match.group("old_count")
    new_count = match.group("new_count")
    return (
        int(match.group("new_start")),
        1 if old_count is None else int(old_count),
        1 if new_count is None else int(new_count),
    )


def _body_kind(raw: str, old_left: int, new_left: int) -> str | None:
    """Classify a hunk body line against the lines its header still owes.

    Returns None once the line cannot belong to the hunk any more.
    """
    if raw.startswith("\\"):
        return "meta"
    if raw.startswith("+") and new_left > 0:
        return "add"
    if raw.startswith("-") and old_left > 0:
        return "remove"
    # Some tools strip the single space off blank context lines.
    if (raw.startswith(" ") or raw == "") and old_left > 0 and new_left > 0:
        return "context"
    return None


def _spend(kind: str, old_left: int, new_left: int) -> tuple[int, int]:
    if kind in ("remove", "context"):
        old_left -= 1
    if kind in ("add", "context"):
        new_left -= 1
    return old_left, new_left


@dataclass(frozen=True)
class DiffIndex:
    """Map of file path → ordered new-file line numbers of added lines.

    ``patches`` keeps each file's hunk text so collaborators that need GitHub
    diff positions (see :func:`get_diff_positions`) can compute them without
    splitting the diff again.
    """

    mapping: Mapping[str, tuple[int, ...]] = field(default_factory=dict)
    patches: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, diff: str | None) -> DiffIndex:
        """Index a unified diff. Empty or malformed input yields an empty index."""
        mapping: dict[str, list[int]] = {}
        patch_lines: dict[str, list[str]] = {}
        current_file: str | None = None
        new_line: int | None = None
        old_left = new_left = 0

        for raw in (diff or "").splitlines():
            if current_file is not None and new_line is not None and (old_left or new_left):
                # Inside a hunk the header's counts decide, so "-- x" and "++ x" stay content.
                kind = _body_kind(raw, old_left, new_left)
                if kind is not None:
                    patch_lines[current_file].append(raw)
                    if kind == "add":
                        mapping[current_file].append(new_line)
                    if kind in ("add", "context"):
                        new_line += 1
                    old_left, new_left = _spend(kind, old_left, new_left)
                    continue

            if raw.startswith("+++ "):
                new_line = None
                old_left = new_left = 0
                match = _NEW_FILE_RE.match(raw)
                path = match.group("path") if match else None
                if path is None or path == "/dev/null":
                    # Deleted file: nothing in the new version to anchor to.
                    current_file = None
                    continue
                current_file = path
                mapping.setdefault(current_file, [])
                patch_lines.setdefault(current_file, [])
                continue

            if raw.startswith(_FILE_HEADER_PREFIXES):
                new_line = None
                old_left = new_left = 0
                if raw.startswith("diff --git "):
                    current_file = None
                continue

            hunk = _HUNK_RE.match(raw)
            if hunk:
                if current_file is None:
                    logger.debug("Hunk header outside a file section ignored: %s", raw)
                    new_line = None
                    old_left = new_left = 0
                    continue
                new_line, old_left, new_left = _hunk_counts(hunk)
                patch_lines[current_file].append(raw)
                continue

            if current_file is None or new_line is None:
                continue

            # Counts spent or missing: fall back to the line markers alone.
            patch_lines[current_file].append(raw)
            if raw.startswith("\\"):
                # "\ No newline at end of file"
                continue
            if raw.startswith("+"):
                mapping[current_file].append(new_line)
                new_line += 1
            elif raw.startswith("-"):
                continue
            else:
                new_line += 1

        return cls(
            mapping=MappingProxyType({path: tuple(lines) for path, lines in mapping.items()}),
            patches=MappingProxyType({path: "\n".join(lines) for path, lines in patch_lines.items()}),
        )

    @property
    def files(self) -> list[str]:
        return list(self.mapping)

    def lines_for(self, path: str) -> tuple[int, ...]:
        return self.mapping.get(path, ())

    def contains(self, path: str, line: int) -> bool:
        return line in self.mapping.get(path, ())

    def resolve(self, candidate: str) -> str | None:
        """Resolve a path mentioned in review prose to an indexed file path.

        Accepts an exact match, an indexed path ending in ``/candidate`` (the
        model wrote ``foo.ts`` for ``src/lib/foo.ts``), or a candidate ending in
        ``/indexed`` (the model wrote an absolute or repo-prefixed path).
        A candidate matching more than one indexed file is rejected.
        """
        candidate = (candidate or "").strip()
        for prefix in ("./", "a/", "b/"):
            if candidate.startswith(prefix) and candidate[len(prefix) :] in self.mapping:
                candidate = candidate[len(prefix) :]
                break
        if not candidate:
            return None
        if candidate in self.mapping:
            return candidate

        suffix_matches = [path for path in self.mapping if path.endswith("/" + candidate)]
        if len(suffix_matches) == 1:
            return suffix_matches[0]
        if len(suffix_matches) > 1:
            logger.debug("Ambiguous file reference %r matches %s", candidate, suffix_matches)
            return None

        prefix_matches = [path for path in self.mapping if candidate.endswith("/" + path)]
        if len(prefix_matches) == 1:
            return prefix_matches[0]
        if len(prefix_matches) > 1:
            logger.debug("Ambiguous file reference %r matches %s", candidate, prefix_matches)
        return None

    def __contains__(self, path: object) -> bool:
        return path in self.mapping

    def __len__(self) -> int:
        return len(self.mapping)


def _walk_patch(patch_text: str) -> Iterator[tuple[str, str, int | None]]:
    """Yield ``(kind, line, new_line)`` for every line of a single-file patch.

    ``kind`` is one of ``hunk``, ``add``, ``remove``, ``context`` or ``meta``;
    ``new_line`` is set for added and context lines only.
    """
    new_line: int | None = None
    old_left = new_left = 0

    for raw in patch_text.splitlines():
        kind = _body_kind(raw, old_left, new_left) if (old_left or new_left) else None
        if kind is None:
            if raw.startswith("@@"):
                match = _HUNK_RE.match(raw)
                if match:
                    new_line, old_left, new_left = _hunk_counts(match)
                else:
                    new_line, old_left, new_left = None, 0, 0
                yield "hunk", raw, None
                continue
            if raw.startswith("\\"):
                kind = "meta"
            elif raw.startswith("+") and not raw.startswith("+++"):
                kind = "add"
            elif raw.startswith("-") and not raw.startswith("---"):
                kind = "remove"
            else:
                kind = "context"
        else:
            old_left, new_left = _spend(kind, old_left, new_left)

        if kind in ("add", "context"):
            yield kind, raw, new_line
            if new_line is not None:
                new_line += 1
        else:
            yield kind, raw, None


def get_diff_positions(patch_text: str) -> dict[int, int]:
    """
    Maps new-file line numbers to their cumulative GitHub diff positions.

    GitHub's review comment API requires positions that are cumulative across
    the entire patch, not reset per hunk. The first @@ header line is NOT
    counted: position 1 is the first content line immediately below it, and
    every later @@ header counts as one position. Added and context lines get
    a position; removed lines take one but have no new-file line number.
    """
    positions: dict[int, int] = {}
    diff_position = 0
    seen_hunk = False

    for kind, _, new_line in _walk_patch(patch_text):
        if kind == "hunk":
            if seen_hunk:
                diff_position += 1
            seen_hunk = True
            continue
        diff_position += 1
        if new_line is not None:
            positions[new_line] = diff_position

    return positions


def get_patch_line_content(patch_text: str, target_line: int) -> str:
    """Return the source content of a specific new-file line number from a patch."""
    for _, raw, new_line in _walk_patch(patch_text):
        if new_line == target_line:
            return raw[1:] if raw and raw[0] in ("+", " ") else raw
    return ""
