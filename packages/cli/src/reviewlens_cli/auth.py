"""GitHub credentials for pull-request reviews.

Local diff reviews never touch GitHub, so the token is only looked up when
``review --pr`` needs it. Sources, first hit wins:

  1. ``github_token`` already resolved into the config (GITHUB_TOKEN env var)
  2. the GitHub CLI session (``gh auth token``)
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)


def _gh_cli_token() -> str | None:
    try:
        proc = subprocess.run(["gh", "auth", "token"], capture_output=True, text=True, timeout=5)
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.debug("gh CLI unavailable: %s", e)
        return None
    token = proc.stdout.strip() if proc.returncode == 0 else ""
    return token or None


def resolve_github_token(config: dict | None = None) -> str | None:
    """Return a GitHub token, or None when no source has one."""
    token = (config or {}).get("github_token") or os.environ.get("GITHUB_TOKEN")
    if token:
        return token
    token = _gh_cli_token()
    if token:
        logger.debug("Using GitHub token from the gh CLI session.")
    return token
