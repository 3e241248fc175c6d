"""review command — review a diff and report findings, score and verdict."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console

from reviewlens_core.comments import build_inline_comments, determine_event, format_findings_as_summary
from reviewlens_core.config import PROVIDERS, SEVERITY_THRESHOLDS, load_config, load_guidelines, validate_config
from reviewlens_core.reviewer import ReviewOutcome, analyze_review, get_reviewer, print_outcome, run_review
from reviewlens_core.scoring import score_record_fields
from reviewlens_core.streaming import StreamAssembler, decoder_for
from reviewlens_store.models import ScoreRecord

from reviewlens_cli.git import GitError, current_branch, detect_repo, local_diff

console = Console()


def _outcome_to_record(outcome: ReviewOutcome, config: dict, repo: str, branch: str, label: str | None) -> ScoreRecord:
    """Map a ReviewOutcome to a ScoreRecord for the store.

    The CLI layer owns this mapping — reviewlens_core has no store knowledge
    and reviewlens_store has no core knowledge. The CLI bridges the two.
    """
    fields = score_record_fields(
        outcome.score,
        outcome.tally,
        model=config.get("model") or config["provider"],
        profile=config.get("profile") or "general",
        repo=repo,
        branch=branch,
        label=label,
    )
    return ScoreRecord(**fields)


def check_credentials(config: dict) -> None:
    if config["provider"] == "anthropic" and not config.get("anthropic_api_key"):
        raise click.UsageError("ANTHROPIC_API_KEY environment variable is not set.")
    # The openai provider also drives keyless local servers through base_url.
    if config["provider"] == "openai" and not (config.get("openai_api_key") or config.get("base_url")):
        raise click.UsageError("OPENAI_API_KEY environment variable is not set.")


def review_with_provider(config: dict, diff: str, stream: bool = True, quick_score: bool = False) -> ReviewOutcome:
    """Run the configured provider over ``diff``, echoing the stream live.

    Ctrl-C while streaming cancels the review; whatever text already arrived
    is still analysed and the outcome is marked incomplete.
    """
    check_credentials(config)
    try:
        reviewer = get_reviewer(config)
        guidelines = load_guidelines(config)
    except (ImportError, ValueError, FileNotFoundError) as e:
        raise click.ClickException(str(e)) from e

    threshold = config["severity_threshold"]
    kwargs = dict(
        threshold=threshold,
        profile=config.get("profile") or "general",
        max_diff_chars=config.get("max_diff_chars"),
        quick_score=quick_score,
    )

    if not stream:
        with console.status(f"Reviewing with {reviewer.model}..."):
            return run_review(reviewer, diff, guidelines, stream=False, **kwargs)

    assembler = StreamAssembler(
        decoder_for(reviewer.KIND),
        on_chunk=lambda text: console.print(text, end="", markup=False, highlight=False),
    )
    console.print(f"[dim]Reviewing with {reviewer.model}...[/dim]\n")
    try:
        outcome = run_review(reviewer, diff, guidelines, stream=True, assembler=assembler, **kwargs)
    except KeyboardInterrupt:
        assembler.cancel()
        console.print("\n[yellow]Review cancelled.[/yellow]")
        outcome = analyze_review(
            assembler.text,
            diff,
            threshold,
            metrics=assembler.metrics,
            completed=False,
            error="cancelled",
            quick_score=quick_score,
        )
    console.print()
    return outcome


def _post_to_pull_request(pr, outcome: ReviewOutcome, model: str) -> None:
    from reviewlens_core.gh.pull_request import post_review

    comments = build_inline_comments(list(outcome.findings), outcome.diff_index)
    body = format_findings_as_summary(list(outcome.findings), model, score=outcome.score)
    event = determine_event(list(outcome.findings))
    post_review(pr, body, comments, event)
    console.print(f"[green]Posted review ({event}) with {len(comments)} inline comment(s).[/green]")


@click.command("review")
@click.option("--diff-file", type=click.Path(exists=True, dir_okay=False), help="Review a saved unified diff.")
@click.option("--staged", is_flag=True, help="Review staged changes instead of the working tree.")
@click.option("--repo", default=None, help="GitHub repository in owner/name format. Detected from origin when omitted.")
@click.option("--pr", "pr_number", type=int, default=None, help="Pull request number to review.")
@click.option(
    "--review-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Analyse an existing review text instead of calling a provider.",
)
@click.option("--provider", type=click.Choice(PROVIDERS), default=None, help="Model provider. Overrides config file.")
@click.option("--model", default=None, help="Model name. Overrides config file.")
@click.option(
    "--threshold",
    type=click.Choice(SEVERITY_THRESHOLDS),
    default=None,
    help="Lowest severity that blocks. Overrides config file.",
)
@click.option(
    "--guidelines",
    "guidelines_path",
    default=None,
    help="Path to a Markdown guidelines file. Overrides config file.",
)
@click.option("--no-stream", is_flag=True, help="Wait for the full response instead of streaming it.")
@click.option(
    "--quick-score",
    is_flag=True,
    help="Score from a line-by-line severity tally instead of the extracted findings.",
)
@click.option("--post", is_flag=True, help="Post the review to the pull request (requires --repo and --pr).")
@click.option("--fail-on-block", is_flag=True, help="Exit with status 1 if the verdict is BLOCK.")
@click.option("--no-save", is_flag=True, help="Do not record the score in the history store.")
@click.pass_context
def review_cmd(
    ctx,
    diff_file: str | None,
    staged: bool,
    repo: str | None,
    pr_number: int | None,
    review_file: str | None,
    provider: str | None,
    model: str | None,
    threshold: str | None,
    guidelines_path: str | None,
    no_stream: bool,
    quick_score: bool,
    post: bool,
    fail_on_block: bool,
    no_save: bool,
):
    """Review a diff with a local or hosted model.

    By default the working tree is diffed against HEAD. The review streams to
    the terminal, then findings, a 0-100 quality score and a PASS/BLOCK
    verdict are printed.

    \b
    Environment variables:
      ANTHROPIC_API_KEY    Required with --provider anthropic
      OPENAI_API_KEY       Required with --provider openai (unless base_url is set)
      GITHUB_TOKEN         Required with --pr (or use gh CLI)
    """
    obj = ctx.obj or {}
    config = load_config(
        obj.get("config_path", ".reviewlens.yml"),
        cli_overrides={
            "provider": provider,
            "model": model,
            "severity_threshold": threshold,
            "guidelines": guidelines_path,
        },
    )
    try:
        validate_config(config)
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    if repo is not None and pr_number is None:
        raise click.UsageError("--repo and --pr must be used together.")
    if pr_number is not None and repo is None:
        repo = detect_repo()
        if not repo:
            raise click.UsageError("Could not detect the GitHub repository from git remote. Pass --repo owner/name.")
    if post and pr_number is None:
        raise click.UsageError("--post requires --repo and --pr.")

    pr = None
    label = None
    branch = ""
    if pr_number is not None:
        from reviewlens_core.gh.pull_request import get_pull, get_pull_diff, get_repo

        from reviewlens_cli.auth import resolve_github_token

        token = resolve_github_token(config)
        if not token:
            raise click.UsageError("No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.")
        pr = get_pull(get_repo(repo, token=token), pr_number)
        diff = get_pull_diff(pr)
        label = f"#{pr_number}"
        branch = getattr(pr.head, "ref", "") or ""
    elif diff_file:
        diff = Path(diff_file).read_text(encoding="utf-8")
        label = diff_file
    else:
        try:
            diff = local_diff(staged=staged)
        except GitError as e:
            raise click.ClickException(str(e)) from e
        branch = current_branch()
        label = "staged" if staged else branch or None

    if not diff.strip():
        console.print("[yellow]No changes to review.[/yellow]")
        return

    if review_file:
        review_text = Path(review_file).read_text(encoding="utf-8")
        outcome = analyze_review(review_text, diff, config["severity_threshold"], quick_score=quick_score)
    else:
        outcome = review_with_provider(config, diff, stream=not no_stream, quick_score=quick_score)

    if not outcome.completed and not outcome.review_text.strip():
        reason = outcome.error or "empty response"
        raise click.ClickException(f"Review incomplete ({reason}): no review text was received.")

    print_outcome(outcome)

    store = obj.get("store")
    if store is not None and not no_save and outcome.completed:
        store.save(_outcome_to_record(outcome, config, repo or "", branch, label))

    if post:
        if outcome.completed:
            _post_to_pull_request(pr, outcome, config.get("model") or config["provider"])
        else:
            console.print("[yellow]Review did not complete; nothing was posted to the pull request.[/yellow]")

    if fail_on_block and not outcome.completed:
        raise click.ClickException("Review did not complete, so the verdict cannot be trusted.")
    if fail_on_block and not outcome.assessment.passed:
        ctx.exit(1)
