"""cache commands — inspect and maintain the analysis cache."""

from __future__ import annotations

from datetime import timedelta

import click
from rich.console import Console

from wtfy_core.cache import CacheNamespace, CacheService
from wtfy_core.progress import ProgressTracker

console = Console()

_NAMESPACES = [
    CacheNamespace.GITHUB_TAGS,
    CacheNamespace.GITHUB_COMMITS,
    CacheNamespace.GITHUB_PRS,
    CacheNamespace.ANALYSIS,
]


@click.group("cache")
def cache_group():
    """Inspect and maintain the cache."""


@cache_group.command("stats")
@click.pass_context
def stats_cmd(ctx):
    """Show how many cache entries exist and how many have expired."""
    stats = CacheService(ctx.obj["store"]).stats()
    console.print(f"  Total entries:   {stats.total_entries}")
    console.print(f"  Expired entries: {stats.expired_entries}")


@cache_group.command("purge")
@click.option(
    "--progress-hours",
    default=24,
    show_default=True,
    help="Also delete progress rows not updated for this many hours.",
)
@click.pass_context
def purge_cmd(ctx, progress_hours: int):
    """Delete expired cache entries and stale progress rows."""
    store = ctx.obj["store"]
    removed = CacheService(store).cleanup()
    stale = ProgressTracker.cleanup(store, max_age=timedelta(hours=progress_hours))
    console.print(f"[green]Removed {removed} expired cache entr{'y' if removed == 1 else 'ies'}.[/green]")
    console.print(f"[green]Removed {stale} stale progress row{'' if stale == 1 else 's'}.[/green]")


@cache_group.command("clear")
@click.argument("namespace", type=click.Choice(_NAMESPACES))
@click.pass_context
def clear_cmd(ctx, namespace: str):
    """Delete every entry in NAMESPACE, expired or not."""
    removed = CacheService(ctx.obj["store"]).clear_namespace(namespace)
    console.print(f"[green]Cleared {removed} entr{'y' if removed == 1 else 'ies'} from {namespace}.[/green]")
