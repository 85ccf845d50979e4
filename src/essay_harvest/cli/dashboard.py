"""Read-only dashboards over the prompt store."""

from __future__ import annotations

from typing import Optional

import typer
from rich.table import Table

from .common import console, get_state, render_panel

app = typer.Typer(
    add_completion=False,
    help="Coverage, source freshness and year-over-year changes.",
    no_args_is_help=True,
)


def _coverage_command(
    ctx: typer.Context,
    *,
    year: Optional[int] = typer.Option(None, "--year", "-y", help="Application year; defaults to the current cycle."),
) -> None:
    runtime = get_state(ctx).runtime
    stats = runtime.admin.coverage(year or runtime.scheduler.current_year())
    render_panel(f"Coverage {stats.year}", stats.model_dump(mode="json"))


def _freshness_command(ctx: typer.Context) -> None:
    items = get_state(ctx).runtime.admin.freshness()
    if not items:
        console.print("[yellow]No source configs.[/yellow]")
        return
    table = Table(title="Source Freshness")
    for column in ("Institution", "Kind", "Group", "Last Scraped", "Status", "Error", "URL"):
        table.add_column(column)
    for item in items:
        table.add_row(
            item.institution,
            item.source_kind.value,
            item.extraction_group,
            item.last_scraped_at.strftime("%Y-%m-%d %H:%M") if item.last_scraped_at else "never",
            item.last_status.value if item.last_status else "-",
            item.last_error or "",
            item.url,
        )
    console.print(table)


def _changes_command(
    ctx: typer.Context,
    *,
    year: Optional[int] = typer.Option(None, "--year", "-y", help="Application year; defaults to the current cycle."),
) -> None:
    runtime = get_state(ctx).runtime
    resolved = year or runtime.scheduler.current_year()
    changes = runtime.admin.year_over_year_changes(resolved)
    if not changes:
        console.print(f"[green]No prompt changes between {resolved - 1} and {resolved}.[/green]")
        return
    table = Table(title=f"Changes {resolved - 1} -> {resolved}")
    table.add_column("Institution")
    table.add_column("Change")
    table.add_column("Prompt")
    table.add_column("Previously")
    for change in changes:
        table.add_row(change.institution, change.change_type.value, change.prompt_text, change.previous_text or "")
    console.print(table)


app.command("coverage")(_coverage_command)
app.command("freshness")(_freshness_command)
app.command("changes")(_changes_command)
