"""analyze command — decide whether an issue was fixed after a given SDK version."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone

import click
from rich.console import Console
from rich.table import Table

from wtfy_core.errors import ConfigurationError
from wtfy_core.models import FIXED, NOT_FIXED, UNKNOWN_RELEASE, CombinedResult
from wtfy_core.pipeline import build_pipeline
from wtfy_core.sdks import SDK_LABELS, SDK_REPOS

console = Console()

_STATUS_STYLE = {FIXED: "green", NOT_FIXED: "red"}
_STATUS_LABEL = {FIXED: "Fixed", NOT_FIXED: "Not fixed"}
_SDK_CHOICES = ", ".join(f"{sdk} ({SDK_LABELS.get(sdk, sdk)})" for sdk in SDK_REPOS)


def _render(result: CombinedResult, sdk: str, version: str) -> None:
    style = _STATUS_STYLE.get(result.status, "yellow")
    label = _STATUS_LABEL.get(result.status, "Unknown")
    console.print(f"\n[bold]{SDK_LABELS.get(sdk, sdk)}[/bold] after {version}")
    console.print(f"[bold {style}]{label}[/bold {style}]  (confidence {result.confidence}%)")
    if result.from_cache:
        console.print("[dim]Answered from cache.[/dim]")
    elif result.request_id:
        console.print(f"[dim]Request ID: {result.request_id}[/dim]")
    console.print(f"\n{result.summary}\n")

    if not result.prs:
        return
    table = Table(title="Relevant Pull Requests", show_header=True, header_style="bold cyan")
    table.add_column("PR", style="bold", width=8)
    table.add_column("Title", max_width=60)
    table.add_column("Merged", width=12)
    table.add_column("Released in", width=14)
    table.add_column("URL")
    for pr in result.prs:
        merged = pr.merged_at.date().isoformat() if pr.merged_at else "-"
        table.add_row(f"#{pr.number}", pr.title, merged, pr.release_version or UNKNOWN_RELEASE, pr.url)
    console.print(table)


@click.command("analyze")
@click.option(
    "--sdk",
    required=True,
    help=f"SDK the issue was reported against. One of: {_SDK_CHOICES}.",
)
@click.option("--version", "version", required=True, help="SDK version the issue was observed in.")
@click.option("--description", required=True, help="Issue description (at least 10 characters).")
@click.option("--request-id", default=None, help="Request ID for progress polling. Generated when omitted.")
@click.option("--client-id", default="cli", show_default=True, help="Identity used for rate limiting.")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.pass_context
def analyze_cmd(
    ctx,
    sdk: str,
    version: str,
    description: str,
    request_id: str | None,
    client_id: str,
    as_json: bool,
):
    """Check whether an issue was fixed in a release after VERSION.

    Searches the SDK's commit history since the reported version, asks the
    model which commits and pull requests address the issue, and prints a
    fixed / not fixed / unknown verdict with a confidence.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub personal access token (or use gh CLI)
      OPENAI_API_KEY       Required when model is openai (default)
      ANTHROPIC_API_KEY    Required when model is anthropic
    """
    config = ctx.obj["config"]
    store = ctx.obj["store"]

    try:
        pipeline = build_pipeline(config, store)
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e
    ctx.call_on_close(pipeline.close)

    request_id = request_id or str(uuid.uuid4())
    with console.status(f"Analyzing {sdk} {version}..."):
        outcome = pipeline.submit(request_id, sdk, version, description, client_id)

    if outcome.kind == "rate_limited":
        reset = datetime.fromtimestamp(outcome.admission.reset_time, tz=timezone.utc)
        raise click.ClickException(f"Rate limit exceeded. Try again after {reset:%Y-%m-%d %H:%M:%S} UTC.")
    if outcome.kind == "invalid":
        raise click.UsageError(outcome.error)
    if outcome.kind == "failed":
        raise click.ClickException(outcome.error)

    result = outcome.result
    if as_json:
        payload = {**result.to_dict(), "request_id": result.request_id, "from_cache": result.from_cache}
        click.echo(json.dumps(payload, indent=2))
        return
    _render(result, sdk, version)
