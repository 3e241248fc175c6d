"""Thin wrappers around the local git executable."""

from __future__ import annotations

import logging
import subprocess

logger = logging.getLogger(__name__)


class GitError(RuntimeError):
    pass


def _git(*args: str, timeout: int = 30) -> str:
    try:
        result = subprocess.run(["git", *args], capture_output=True, text=True, timeout=timeout)
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        raise GitError(f"git {' '.join(args)} failed: {e}") from e
    if result.returncode != 0:
        raise GitError(result.stderr.strip() or f"git {' '.join(args)} exited with {result.returncode}")
    return result.stdout


def local_diff(staged: bool = False) -> str:
    """Return the staged diff, or the working tree diff against HEAD."""
    if staged:
        return _git("diff", "--cached", "--no-color")
    return _git("diff", "HEAD", "--no-color")


def current_branch() -> str:
    try:
        return _git("rev-parse", "--abbrev-ref", "HEAD", timeout=5).strip()
    except GitError:
        return ""


def hooks_dir() -> str:
    return _git("rev-parse", "--git-path", "hooks", timeout=5).strip()


def detect_repo() -> str | None:
    """Try to detect the GitHub repo slug from the git remote URL."""
    try:
        url = _git("remote", "get-url", "origin", timeout=5).strip()
    except GitError:
        return None
    # https://github.com/owner/repo.git  →  owner/repo
    # git@github.com:owner/repo.git      →  owner/repo
    if "github.com" not in url:
        return None
    slug = url.split("github.com")[-1].lstrip("/:").removesuffix(".git")
    return slug if "/" in slug else None
