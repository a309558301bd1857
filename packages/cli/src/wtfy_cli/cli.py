"""CLI entry point for wtfy.

Commands:
  analyze   — check whether an issue was fixed after a given SDK version
  progress  — show the progress row of a running or finished analysis
  history   — display past analysis results from the configured store
  cache     — inspect, purge or clear the analysis cache
  health    — check the store and the remaining GitHub API quota
  search    — search an SDK repository's commit messages
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from wtfy_cli.commands.analyze import analyze_cmd
from wtfy_cli.commands.cache import cache_group
from wtfy_cli.commands.health import health_cmd
from wtfy_cli.commands.history import history_cmd
from wtfy_cli.commands.progress import progress_cmd
from wtfy_cli.commands.search import search_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the configured store from .wtfy.yml settings.

    Store selection:
      store: sqlite → SQLiteStore (store_path, default .wtfy.db)
      store: memory → MemoryStore (lives for one command only)
      store: noop   → NoOpStore  (no cache, progress or history)

    This factory lives in cli.py so neither wtfy_core nor wtfy_store know
    about the CLI config format.
    """
    store_type = config.get("store", "sqlite")

    if store_type == "sqlite":
        from wtfy_store.sqlite import SQLiteStore

        return SQLiteStore(db_path=config.get("store_path", ".wtfy.db"))

    if store_type == "memory":
        from wtfy_store.memory import MemoryStore

        return MemoryStore()

    if store_type != "noop":
        console.print(f"[yellow]Unknown store {store_type!r}. Falling back to no store.[/yellow]")

    from wtfy_store.noop import NoOpStore

    return NoOpStore()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )
    # PyGithub and the HTTP stack are noisy at DEBUG.
    for name in ("github", "urllib3", "httpx", "httpcore", "openai", "anthropic"):
        logging.getLogger(name).setLevel(logging.WARNING)


@click.group()
@click.version_option(
    version=importlib.metadata.version("wtfy"),
    prog_name="wtfy",
)
@click.option(
    "--config",
    "config_path",
    default=".wtfy.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="WTFY_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every pipeline step to stderr.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Find out whether an SDK issue was already fixed upstream."""
    from wtfy_core.config import load_config
    from wtfy_cli.auth import resolve_github_token

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    config = load_config(config_path)

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token()
    if token:
        config["github_token"] = token

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(analyze_cmd)
main.add_command(progress_cmd)
main.add_command(history_cmd)
main.add_command(cache_group)
main.add_command(health_cmd)
main.add_command(search_cmd)
