"""CLI entry point for reviewlens.

Commands:
  review   — review a diff (local changes, a diff file or a pull request)
  guard    — pre-commit gate: review staged changes and block on severe findings
  init     — write .reviewlens.yml and install the pre-commit hook
  history  — show past review scores from the configured store
  stats    — aggregate score trends across review history
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from reviewlens_cli.commands.guard import guard_cmd
from reviewlens_cli.commands.history import history_cmd
from reviewlens_cli.commands.init import init_cmd
from reviewlens_cli.commands.review import review_cmd
from reviewlens_cli.commands.stats import stats_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the configured store from .reviewlens.yml settings.

    Store selection:
      store: json   → JsonFileStore (store_path or .reviewlens-scores.json)
      store: sqlite → SQLiteStore   (store_path or .reviewlens.db)
      (default)     → NoOpStore     (no persistence)

    This factory lives in cli.py so neither reviewlens_core nor
    reviewlens_store know about the CLI config format.
    """
    from reviewlens_store.noop import NoOpStore

    store_type = config.get("store", "noop")
    max_records = int(config.get("history_limit") or 200)

    if store_type == "json":
        from reviewlens_store.json_file import DEFAULT_PATH, JsonFileStore

        return JsonFileStore(path=config.get("store_path") or DEFAULT_PATH, max_records=max_records)

    if store_type == "sqlite":
        from reviewlens_store.sqlite import SQLiteStore

        return SQLiteStore(db_path=config.get("store_path") or ".reviewlens.db", max_records=max_records)

    if store_type not in (None, "noop", "none"):
        console.print(f"[yellow]Unknown store {store_type!r}. Falling back to no store.[/yellow]")
    return NoOpStore()


@click.group()
@click.version_option(
    version=importlib.metadata.version("reviewlens"),
    prog_name="reviewlens",
)
@click.option(
    "--config",
    "config_path",
    default=".reviewlens.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="REVIEWLENS_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Local-first AI code reviewer with quality scores and a pre-commit gate."""
    from reviewlens_core.config import load_config

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )

    ctx.ensure_object(dict)

    config = load_config(config_path)
    store = _build_store(config)
    ctx.obj["config_path"] = config_path
    ctx.obj["config"] = config
    ctx.obj["store"] = store
    ctx.call_on_close(store.close)


main.add_command(review_cmd)
main.add_command(guard_cmd)
main.add_command(init_cmd)
main.add_command(history_cmd)
main.add_command(stats_cmd)
