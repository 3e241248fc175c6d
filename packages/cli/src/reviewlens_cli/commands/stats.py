"""stats command — aggregate score trends across review history."""

from __future__ import annotations

from collections import Counter

import click
from rich.console import Console
from rich.table import Table

from reviewlens_core.findings import SEVERITY_ORDER

from reviewlens_cli.commands.history import require_store

console = Console()

_SEV_STYLE = {"critical": "red", "high": "yellow", "medium": "blue", "low": "cyan", "info": "dim"}


@click.command("stats")
@click.option("--repo", default=None, help="Only include reviews of this repository (owner/name).")
@click.option("--last", "last_n", default=50, show_default=True, help="Number of recent reviews to aggregate.")
@click.pass_context
def stats_cmd(ctx, repo: str | None, last_n: int):
    """Show score averages and severity totals over recent reviews."""
    store = require_store(ctx)

    records = store.list_scores(limit=last_n, repo=repo)
    if not records:
        console.print("[yellow]No review records found.[/yellow]")
        return

    n = len(records)
    scores = [r.score for r in records]
    severity_counter: Counter[str] = Counter()
    for record in records:
        severity_counter.update(record.finding_counts)

    console.print(f"\n[bold]Review stats over the last {n} review(s)[/bold]")
    console.print(f"  Average score: {sum(scores) / n:.1f}")
    console.print(f"  Best / worst:  {max(scores)} / {min(scores)}")
    console.print(f"  Latest:        {records[0].score}")
    if n > 1:
        # records are most recent first
        delta = records[0].score - records[-1].score
        console.print(f"  Trend:         {delta:+d} since {records[-1].timestamp[:10]}")

    sub_table = Table(title="Average Sub-scores", show_header=True)
    sub_table.add_column("Dimension", style="bold")
    sub_table.add_column("Average", justify="right")
    for name in ("correctness", "security", "maintainability", "performance"):
        sub_table.add_row(name, f"{sum(getattr(r, name) for r in records) / n:.1f}")
    console.print(sub_table)

    total = sum(severity_counter.values())
    sev_table = Table(title="Severity Breakdown", show_header=True)
    sev_table.add_column("Severity", style="bold")
    sev_table.add_column("Count", justify="right")
    sev_table.add_column("% of total", justify="right")
    for sev in SEVERITY_ORDER:
        count = severity_counter.get(sev, 0)
        pct = f"{count / total * 100:.1f}%" if total else "0%"
        style = _SEV_STYLE[sev]
        sev_table.add_row(f"[{style}]{sev}[/{style}]", str(count), pct)
    console.print(sev_table)
