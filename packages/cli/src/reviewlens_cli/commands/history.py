"""history command — display past review scores from the store."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from reviewlens_core.findings import SEVERITY_ORDER
from reviewlens_core.scoring import score_label

console = Console()

_LABEL_STYLE = {"good": "green", "fair": "yellow", "poor": "red"}


def require_store(ctx):
    from reviewlens_store.noop import NoOpStore

    store = ctx.obj.get("store") if ctx.obj else None
    if store is None or isinstance(store, NoOpStore):
        raise click.UsageError(
            "No store configured. Add 'store: json' or 'store: sqlite' to .reviewlens.yml, "
            "or run `reviewlens init` to set one up."
        )
    return store


@click.command("history")
@click.option("--repo", default=None, help="Only show reviews of this repository (owner/name).")
@click.option("--limit", default=20, show_default=True, help="Maximum number of records to show.")
@click.option("--clear", is_flag=True, help="Delete all stored scores.")
@click.pass_context
def history_cmd(ctx, repo: str | None, limit: int, clear: bool):
    """Show past review scores, most recent first."""
    store = require_store(ctx)

    if clear:
        if click.confirm("Delete all stored review scores?", default=False):
            store.clear()
            console.print("[green]History cleared.[/green]")
        return

    records = store.list_scores(limit=limit, repo=repo)
    if not records:
        console.print("[yellow]No review records found.[/yellow]")
        return

    table = Table(title="Review History", show_header=True, header_style="bold cyan")
    table.add_column("When", width=16)
    table.add_column("Target")
    table.add_column("Model")
    table.add_column("Score", justify="right", width=5)
    table.add_column("Cor/Sec/Mnt/Prf", justify="right", width=15)
    table.add_column("Findings")

    for r in records:
        style = _LABEL_STYLE[score_label(r.score)]
        findings = " ".join(f"{s[0].upper()}{r.finding_counts[s]}" for s in SEVERITY_ORDER if r.finding_counts.get(s))
        table.add_row(
            r.timestamp[:16].replace("T", " "),
            r.label or r.branch or r.repo,
            r.model,
            f"[{style}]{r.score}[/{style}]",
            f"{r.correctness}/{r.security}/{r.maintainability}/{r.performance}",
            findings or "-",
        )

    console.print(table)
