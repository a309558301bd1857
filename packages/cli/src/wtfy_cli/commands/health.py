"""health command — check the store and GitHub API quota."""

from __future__ import annotations

import click
from rich.console import Console

from wtfy_core.gh.repository import GitHubService
from wtfy_store.models import utcnow

console = Console()


@click.command("health")
@click.pass_context
def health_cmd(ctx):
    """Check that the store answers and report the remaining GitHub rate limit.

    Exits with status 1 when the store is unreachable.
    """
    store = ctx.obj["store"]
    config = ctx.obj["config"]
    healthy = True

    try:
        total, _ = store.count_entries(utcnow())
        console.print(f"[green]✓[/green] Store {type(store).__name__} reachable ({total} cache entries)")
    except Exception as e:
        healthy = False
        console.print(f"[red]✗[/red] Store {type(store).__name__} unreachable: {e}")

    token = config.get("github_token")
    try:
        status = GitHubService(token).rate_limit_status()
        auth = "authenticated" if token else "unauthenticated"
        console.print(
            f"[green]✓[/green] GitHub API ({auth}): {status.remaining}/{status.limit} requests left, "
            f"resets {status.reset_at:%H:%M:%S} UTC"
        )
    except Exception as e:
        console.print(f"[yellow]![/yellow] GitHub API check failed: {e}")

    if not healthy:
        ctx.exit(1)
