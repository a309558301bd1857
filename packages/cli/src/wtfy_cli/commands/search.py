"""search command — search an SDK's commit messages directly."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from wtfy_core.gh.repository import GitHubService
from wtfy_core.sdks import get_repo_for_sdk

console = Console()


@click.command("search")
@click.option("--sdk", required=True, help="SDK whose repository to search.")
@click.option("--limit", default=20, show_default=True, help="Maximum number of commits to show.")
@click.argument("query")
@click.pass_context
def search_cmd(ctx, sdk: str, limit: int, query: str):
    """Search the SDK repository's commit messages for QUERY.

    Useful for checking which keywords would match before running analyze.
    """
    repo = get_repo_for_sdk(sdk)
    if repo is None:
        raise click.UsageError(f"Unsupported SDK: {sdk}")

    commits = GitHubService(ctx.obj["config"].get("github_token")).search_commits(repo, query, limit=limit)
    if not commits:
        console.print("[yellow]No matching commits found.[/yellow]")
        return

    table = Table(title=f"Commits in {repo} matching {query!r}", show_header=True, header_style="bold cyan")
    table.add_column("SHA", width=8)
    table.add_column("Date", width=10)
    table.add_column("Title")
    for c in commits:
        date = c.authored_at.date().isoformat() if c.authored_at else ""
        table.add_row(c.sha[:7], date, c.title)
    console.print(table)
