"""progress command — show how far an analysis has got."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from wtfy_core.progress import ProgressTracker

console = Console()


@click.command("progress")
@click.argument("request_id")
@click.pass_context
def progress_cmd(ctx, request_id: str):
    """Show the progress of the analysis with REQUEST_ID."""
    record = ProgressTracker.get_progress(ctx.obj["store"], request_id)
    if record is None:
        console.print(f"[yellow]No progress found for {request_id}.[/yellow]")
        return

    if record.error:
        state = f"[red]failed: {record.error}[/red]"
    elif record.is_completed:
        state = "[green]completed[/green]"
    else:
        state = "[cyan]running[/cyan]"

    console.print(f"\n[bold]{request_id}[/bold]  {state}")
    console.print(f"  Step {record.current_step}/{record.total_steps}: {record.step_title}")
    if record.step_description:
        console.print(f"  {record.step_description}")
    console.print(f"  Updated: {record.updated_at:%Y-%m-%d %H:%M:%S}")

    if not record.step_results:
        return
    table = Table(title="Completed Steps", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", width=3)
    table.add_column("Step", style="bold")
    table.add_column("Details")
    for step in sorted(record.step_results, key=int):
        result = record.step_results[step]
        table.add_row(step, result.get("title", ""), result.get("description", ""))
    console.print(table)
