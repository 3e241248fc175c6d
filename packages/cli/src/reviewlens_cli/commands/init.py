"""init command — setup wizard.

Writes .reviewlens.yml and installs a git pre-commit hook that runs
`reviewlens guard`, so every commit in the repository is gated on the
configured severity threshold.
"""

from __future__ import annotations

import stat
from pathlib import Path

import click
import yaml
from rich.console import Console

from reviewlens_core.config import PROVIDERS, SEVERITY_THRESHOLDS

from reviewlens_cli.git import GitError, hooks_dir

console = Console()

HOOK_MARKER = "# installed by reviewlens"

_HOOK_TEMPLATE = """\
#!/bin/sh
{marker}
# Review staged changes; a BLOCK verdict aborts the commit.
# Skip once with: git commit --no-verify
exec reviewlens guard --threshold {threshold}
"""

_DEFAULT_MODELS = {"ollama": "qwen2.5-coder:7b", "anthropic": "claude-sonnet-4-20250514", "openai": "gpt-4o"}


@click.command("init")
@click.option("--provider", type=click.Choice(PROVIDERS), default=None, help="Model provider.")
@click.option("--model", default=None, help="Model name.")
@click.option("--threshold", type=click.Choice(SEVERITY_THRESHOLDS), default=None, help="Blocking severity.")
@click.option("--store", "store_type", type=click.Choice(["noop", "json", "sqlite"]), default=None)
@click.option("--hook/--no-hook", default=None, help="Install the pre-commit hook.")
@click.option("--uninstall-hook", is_flag=True, help="Remove the reviewlens pre-commit hook and exit.")
@click.option("--force", is_flag=True, help="Overwrite an existing pre-commit hook not created by reviewlens.")
@click.pass_context
def init_cmd(
    ctx,
    provider: str | None,
    model: str | None,
    threshold: str | None,
    store_type: str | None,
    hook: bool | None,
    uninstall_hook: bool,
    force: bool,
):
    """Set up reviewlens for this repository.

    Options that are not given on the command line are asked for
    interactively.
    """
    if uninstall_hook:
        removed = remove_hook(_hook_path())
        console.print("[green]Removed pre-commit hook.[/green]" if removed else "[yellow]No reviewlens hook found.[/yellow]")
        return

    console.print("\n[bold cyan]reviewlens init[/bold cyan] — setup wizard\n")

    if provider is None:
        provider = click.prompt("Model provider", type=click.Choice(PROVIDERS), default="ollama")
    if model is None:
        model = click.prompt("Model", default=_DEFAULT_MODELS[provider])
    if threshold is None:
        threshold = click.prompt("Block commits at severity", type=click.Choice(SEVERITY_THRESHOLDS), default="high")
    if store_type is None:
        store_type = click.prompt(
            "Score history store", type=click.Choice(["noop", "json", "sqlite"]), default="json"
        )

    config_path = Path((ctx.obj or {}).get("config_path", ".reviewlens.yml"))
    write_config(
        config_path,
        {"provider": provider, "model": model, "severity_threshold": threshold, "store": store_type},
    )
    console.print(f"[green]Wrote {config_path}[/green]")

    if hook is None:
        hook = click.confirm("Install the pre-commit hook?", default=True)
    if hook:
        path = _hook_path()
        if install_hook(path, threshold, force=force):
            console.print(f"[green]Installed pre-commit hook at {path}[/green]")
        else:
            console.print(
                f"[yellow]{path} already exists and was not created by reviewlens. "
                "Re-run with --force to replace it.[/yellow]"
            )

    if provider == "anthropic":
        console.print("\n[yellow]Remember to export [bold]ANTHROPIC_API_KEY[/bold].[/yellow]")
    elif provider == "openai":
        console.print("\n[yellow]Remember to export [bold]OPENAI_API_KEY[/bold] (or set base_url).[/yellow]")

    console.print("\n[bold green]Setup complete![/bold green]")


def _hook_path() -> Path:
    try:
        return Path(hooks_dir()) / "pre-commit"
    except GitError as e:
        raise click.ClickException(f"Not a git repository: {e}") from e


def write_config(path: Path, config: dict) -> None:
    """Write or update the config file, preserving any existing keys."""
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text()) or {}
    existing.update(config)
    path.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False))


def install_hook(path: Path, threshold: str, force: bool = False) -> bool:
    """Write the pre-commit hook. Returns False if a foreign hook is in the way."""
    if path.exists() and HOOK_MARKER not in path.read_text() and not force:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_HOOK_TEMPLATE.format(marker=HOOK_MARKER, threshold=threshold))
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return True


def remove_hook(path: Path) -> bool:
    if not path.exists() or HOOK_MARKER not in path.read_text():
        return False
    path.unlink()
    return True
