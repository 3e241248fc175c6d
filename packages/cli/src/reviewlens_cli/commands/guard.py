"""guard command — pre-commit gate over the staged changes."""

from __future__ import annotations

import click
from rich.console import Console

from reviewlens_core.config import SEVERITY_THRESHOLDS, load_config, validate_config
from reviewlens_core.gate import format_assessment_summary

from reviewlens_cli.commands.review import review_with_provider
from reviewlens_cli.git import GitError, local_diff

console = Console()


@click.command("guard")
@click.option(
    "--threshold",
    type=click.Choice(SEVERITY_THRESHOLDS),
    default=None,
    help="Lowest severity that blocks the commit. Overrides config file.",
)
@click.option("--no-stream", is_flag=True, help="Wait for the full response instead of streaming it.")
@click.pass_context
def guard_cmd(ctx, threshold: str | None, no_stream: bool):
    """Review staged changes and exit 1 if any finding reaches the threshold.

    A review that fails or stops early also exits 1.

    Installed as a git pre-commit hook by `reviewlens init`. Bypass a single
    commit with `git commit --no-verify`.
    """
    obj = ctx.obj or {}
    config = load_config(obj.get("config_path", ".reviewlens.yml"), cli_overrides={"severity_threshold": threshold})
    try:
        validate_config(config)
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    try:
        diff = local_diff(staged=True)
    except GitError as e:
        raise click.ClickException(str(e)) from e

    if not diff.strip():
        console.print("[dim]reviewlens: nothing staged, skipping review.[/dim]")
        return

    outcome = review_with_provider(config, diff, stream=not no_stream)
    assessment = outcome.assessment

    if not outcome.completed:
        # Incomplete reviews never pass.
        if outcome.review_text.strip():
            console.print(format_assessment_summary(assessment))
        reason = outcome.error or "incomplete response"
        console.print(
            f"[red]reviewlens: BLOCK[/red]: review did not complete ({reason}). "
            "Retry, or commit with --no-verify."
        )
        ctx.exit(1)

    console.print(format_assessment_summary(assessment))
    if assessment.passed:
        console.print("[green]reviewlens: PASS[/green]")
        return

    console.print("[red]reviewlens: BLOCK[/red]: fix the findings above or commit with --no-verify.")
    ctx.exit(1)
