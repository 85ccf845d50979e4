"""Pipeline run commands."""

from __future__ import annotations

from typing import Optional

import typer
from rich.table import Table

from essay_harvest.entities import PipelineRun

from .common import CLIError, console, get_state, render_panel, run_async

app = typer.Typer(
    add_completion=False,
    help="Trigger full-catalogue runs and inspect their history.",
    no_args_is_help=True,
)


def _format_time(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"


def _trigger_command(
    ctx: typer.Context,
    *,
    operator: Optional[str] = typer.Option(None, "--operator", help="Operator identifier recorded on the run."),
) -> None:
    """Start a manual run and wait for the batch to finish."""

    runtime = get_state(ctx).runtime

    async def _trigger() -> PipelineRun | None:
        receipt = await runtime.admin.trigger_manual_run(operator)
        console.print(f"Run [bold]{receipt['run_id']}[/bold] started ({receipt['status']}).")
        with console.status("Harvesting prompts..."):
            return await runtime.scheduler.wait_for(receipt["run_id"])

    run = run_async(_trigger())
    if run is None:
        raise CLIError("Run record vanished from the store")
    _print_run(run)


def _list_command(
    ctx: typer.Context,
    *,
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Maximum number of runs to list."),
) -> None:
    runs = get_state(ctx).runtime.admin.list_runs(limit)
    if not runs:
        console.print("[yellow]No runs recorded yet.[/yellow]")
        return
    table = Table(title="Pipeline Runs")
    for column in ("ID", "Trigger", "Year", "Status", "OK", "Failed", "New", "Started", "Completed"):
        table.add_column(column)
    for run in runs:
        table.add_row(
            run.id,
            run.trigger.value,
            str(run.application_year),
            run.status.value,
            str(run.success_count),
            str(run.failed_count),
            str(run.new_prompts_count),
            _format_time(run.started_at),
            _format_time(run.completed_at),
        )
    console.print(table)


def _show_command(
    ctx: typer.Context,
    run_id: str = typer.Argument(..., help="Run identifier."),
) -> None:
    try:
        run = get_state(ctx).runtime.admin.get_run(run_id)
    except KeyError as exc:
        raise CLIError(f"Run '{run_id}' not found") from exc
    _print_run(run)


def _print_run(run: PipelineRun) -> None:
    render_panel(f"Run {run.id}", run.model_dump(mode="json"))


app.command("trigger")(_trigger_command)
app.command("list")(_list_command)
app.command("show")(_show_command)
