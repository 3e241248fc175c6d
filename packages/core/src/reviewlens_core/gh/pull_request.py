from __future__ import annotations

from github import Github


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_diff(pr) -> str:
    """Re-assemble a unified diff from the PR's per-file patches.

    GitHub returns each file's hunks without file headers; the headers are
    rebuilt here so the result indexes like a local ``git diff``. Binary files
    have no patch and are skipped.
    """
    parts = []
    for f in pr.get_files():
        if not f.patch:
            continue
        old_path = getattr(f, "previous_filename", None) or f.filename
        old_header = "/dev/null" if f.status == "added" else f"a/{old_path}"
        new_header = "/dev/null" if f.status == "removed" else f"b/{f.filename}"
        parts.append(f"diff --git a/{old_path} b/{f.filename}\n--- {old_header}\n+++ {new_header}\n{f.patch}")
    return "\n".join(parts)


def post_review(pr, body: str, comments: list[dict], event: str) -> None:
    """Post one review with a summary body and optional inline comments."""
    api_comments = [{"path": c["path"], "position": c["position"], "body": c["body"]} for c in comments]
    if api_comments:
        pr.create_review(body=body, event=event, comments=api_comments)
    else:
        pr.create_review(body=body, event=event)
