"""Single-institution scrapes and the calendar scheduler."""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich.table import Table

from essay_harvest.pipeline import ScrapePreview

from .common import CLIError, console, get_state, parse_indices, render_panel, run_async

scrape_app = typer.Typer(
    add_completion=False,
    help="Scrape one institution, with or without persisting.",
    no_args_is_help=True,
)

schedule_app = typer.Typer(
    add_completion=False,
    help="Calendar-driven pipeline runs.",
    no_args_is_help=True,
)


def _print_preview(preview: ScrapePreview) -> None:
    table = Table(title=f"{preview.institution_name} {preview.application_year}")
    for column in ("#", "Change", "Valid", "Conf.", "Category", "Words", "Prompt"):
        table.add_column(column)
    for item in preview.candidates:
        table.add_row(
            str(item.index),
            item.change_type.value,
            "yes" if item.verdict.is_valid else "no",
            f"{item.verdict.confidence:.2f}",
            (item.verdict.category or item.candidate.category).value,
            str(item.candidate.word_limit or "-"),
            item.candidate.prompt_text,
        )
    console.print(table)
    sources = ", ".join(f"{source.source_type.value} {source.source_url}" for source in preview.sources)
    console.print(f"Sources: {sources}")


def _preview_command(
    ctx: typer.Context,
    institution: str = typer.Argument(..., help="Institution name or alias."),
    *,
    year: Optional[int] = typer.Option(None, "--year", "-y", help="Application year; defaults to the current cycle."),
    confirm: Optional[str] = typer.Option(
        None,
        "--confirm",
        help="Comma-separated candidate indices to save after previewing.",
    ),
    operator: Optional[str] = typer.Option(None, "--operator", help="Operator identifier for the audit trail."),
) -> None:
    admin = get_state(ctx).runtime.admin
    with console.status(f"Scraping {institution}..."):
        preview = run_async(admin.test_scrape(institution, year))
    if preview.error:
        raise CLIError(preview.error)
    _print_preview(preview)
    if confirm is None:
        return
    try:
        created = admin.confirm_save(preview, parse_indices(confirm), operator_id=operator)
    except (IndexError, KeyError) as exc:
        raise CLIError(str(exc)) from exc
    console.print(f"[green]Saved {created} prompt(s).[/green]")


def _institution_command(
    ctx: typer.Context,
    institution: str = typer.Argument(..., help="Institution name or alias."),
    *,
    year: Optional[int] = typer.Option(None, "--year", "-y", help="Application year; defaults to the current cycle."),
) -> None:
    runtime = get_state(ctx).runtime
    resolved = year or runtime.scheduler.current_year()
    with console.status(f"Scraping {institution}..."):
        summary = run_async(runtime.acquisition.scrape_institution(institution, resolved))
    render_panel(f"{summary.institution_name} {resolved}", summary.as_detail())
    if not summary.success:
        raise typer.Exit(code=1)


def _serve_command(ctx: typer.Context) -> None:
    scheduler = get_state(ctx).runtime.scheduler
    console.print(
        f"Serving calendar runs (pre-season {scheduler.schedule_policy.pre_season}, "
        f"post-RD {scheduler.schedule_policy.post_rd}, daily check at {scheduler.schedule_policy.tick_time})."
    )
    try:
        asyncio.run(scheduler.serve())
    except KeyboardInterrupt:
        console.print("[yellow]Scheduler stopped.[/yellow]")


def _tick_command(ctx: typer.Context) -> None:
    scheduler = get_state(ctx).runtime.scheduler

    async def _tick() -> Optional[str]:
        scheduler.mark_stale_runs()
        run_id = await scheduler.tick()
        if run_id is not None:
            await scheduler.wait_for(run_id)
        return run_id

    run_id = run_async(_tick())
    if run_id is None:
        console.print("No calendar run due today.")
    else:
        console.print(f"[green]Calendar run {run_id} finished.[/green]")


scrape_app.command("preview")(_preview_command)
scrape_app.command("institution")(_institution_command)
schedule_app.command("serve")(_serve_command)
schedule_app.command("tick")(_tick_command)
