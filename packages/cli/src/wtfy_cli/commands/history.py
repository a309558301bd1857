"""history command — display past analysis results from the store."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from wtfy_core.models import FIXED, NOT_FIXED

console = Console()

_STATUS_STYLE = {FIXED: "green", NOT_FIXED: "red"}


@click.command("history")
@click.option("--sdk", default=None, help="Only show results for this SDK.")
@click.option("--limit", default=20, show_default=True, help="Maximum number of records to show.")
@click.pass_context
def history_cmd(ctx, sdk: str | None, limit: int):
    """Show past analysis results, most recent first."""
    from wtfy_store.noop import NoOpStore

    store = ctx.obj.get("store") if ctx.obj else None
    if store is None or isinstance(store, NoOpStore):
        raise click.UsageError("No store configured. Set 'store: sqlite' in .wtfy.yml to keep history.")

    records = store.list_results(sdk=sdk, limit=limit)
    if not records:
        console.print("[yellow]No analysis results found.[/yellow]")
        return

    title = f"Analysis History — {sdk}" if sdk else "Analysis History"
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Analyzed At", width=20)
    table.add_column("SDK")
    table.add_column("Version")
    table.add_column("Status", width=10)
    table.add_column("Conf.", justify="right", width=6)
    table.add_column("PRs", justify="right", width=5)
    table.add_column("Summary", max_width=50)

    for r in records:
        style = _STATUS_STYLE.get(r.status, "yellow")
        table.add_row(
            f"{r.created_at:%Y-%m-%d %H:%M:%S}",
            r.sdk,
            r.version,
            f"[{style}]{r.status}[/{style}]",
            str(r.confidence),
            str(len(r.prs)),
            r.summary[:50],
        )

    console.print(table)
