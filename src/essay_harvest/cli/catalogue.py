"""Institution catalogue and source-config commands."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import typer
from rich.table import Table

from essay_harvest.entities import ExtractionHints, SourceType
from essay_harvest.orchestration import SourceConfigError

from .common import CLIError, console, get_state, render_panel

institutions_app = typer.Typer(
    add_completion=False,
    help="Manage the institution catalogue.",
    no_args_is_help=True,
)

sources_app = typer.Typer(
    add_completion=False,
    help="Manage admin-configured source pages.",
    no_args_is_help=True,
)


def _institutions_list_command(ctx: typer.Context) -> None:
    institutions = get_state(ctx).runtime.admin.list_institutions()
    if not institutions:
        console.print("[yellow]The catalogue is empty.[/yellow]")
        return
    table = Table(title="Institutions")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Aliases")
    for institution in institutions:
        table.add_row(institution.id, institution.name, ", ".join(institution.aliases))
    console.print(table)


def _institutions_add_command(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Institution display name."),
    alias: List[str] = typer.Option([], "--alias", "-a", help="Alternative name (repeatable)."),  # noqa: B008
) -> None:
    try:
        institution = get_state(ctx).runtime.admin.add_institution(name, alias)
    except SourceConfigError as exc:
        raise CLIError(str(exc)) from exc
    console.print(f"[green]Institution '{institution.name}' ({institution.id}) is in the catalogue.[/green]")


def _hints(
    selectors: List[str],
    remove_selectors: List[str],
    llm_hint: Optional[str],
) -> ExtractionHints | None:
    if not (selectors or remove_selectors or llm_hint):
        return None
    return ExtractionHints(css_selectors=selectors, remove_selectors=remove_selectors, llm_hint=llm_hint)


def _sources_list_command(
    ctx: typer.Context,
    *,
    institution: Optional[str] = typer.Option(None, "--institution", "-i", help="Only this institution."),
) -> None:
    admin = get_state(ctx).runtime.admin
    try:
        sources = admin.list_sources(institution)
    except SourceConfigError as exc:
        raise CLIError(str(exc)) from exc
    if not sources:
        console.print("[yellow]No source configs.[/yellow]")
        return
    names = {item.id: item.name for item in admin.list_institutions()}
    table = Table(title="Source Configs")
    for column in ("ID", "Institution", "Kind", "Group", "Priority", "Active", "URL", "Last Status"):
        table.add_column(column)
    for config in sources:
        table.add_row(
            config.id,
            names.get(config.institution_id, config.institution_id),
            config.source_kind.value,
            config.extraction_group,
            str(config.priority),
            "yes" if config.is_active else "no",
            config.url,
            config.last_run_status.value if config.last_run_status else "-",
        )
    console.print(table)


def _sources_add_command(
    ctx: typer.Context,
    institution: str = typer.Argument(..., help="Institution name or alias."),
    url: str = typer.Argument(..., help="Page holding the essay prompts."),
    *,
    kind: SourceType = typer.Option(SourceType.OFFICIAL, "--kind", case_sensitive=False, help="Source kind."),
    slug: Optional[str] = typer.Option(None, "--slug", help="Aggregator slug, when relevant."),
    group: str = typer.Option("default", "--group", help="Extraction group label."),
    priority: int = typer.Option(0, "--priority", help="Higher priorities are tried first."),
    selector: List[str] = typer.Option([], "--selector", help="CSS selector narrowing the content (repeatable)."),  # noqa: B008
    remove_selector: List[str] = typer.Option(  # noqa: B008
        [], "--remove-selector", help="CSS selector stripped before extraction (repeatable)."
    ),
    hint: Optional[str] = typer.Option(None, "--hint", help="Free-text hint passed to the extraction model."),
    active: bool = typer.Option(True, "--active/--inactive", help="Whether runs should use this source."),
) -> None:
    try:
        config = get_state(ctx).runtime.admin.add_source(
            institution,
            url,
            source_kind=kind,
            slug=slug,
            extraction_group=group,
            priority=priority,
            hints=_hints(selector, remove_selector, hint),
            is_active=active,
        )
    except SourceConfigError as exc:
        raise CLIError(str(exc)) from exc
    console.print(f"[green]Source {config.id} added.[/green]")


def _sources_update_command(
    ctx: typer.Context,
    source_id: str = typer.Argument(..., help="Source config identifier."),
    *,
    url: Optional[str] = typer.Option(None, "--url"),
    group: Optional[str] = typer.Option(None, "--group"),
    priority: Optional[int] = typer.Option(None, "--priority"),
    active: Optional[bool] = typer.Option(None, "--active/--inactive", show_default=False),
) -> None:
    fields: Dict[str, Any] = {}
    if url is not None:
        fields["url"] = url
    if group is not None:
        fields["extraction_group"] = group
    if priority is not None:
        fields["priority"] = priority
    if active is not None:
        fields["is_active"] = active
    if not fields:
        raise CLIError("Nothing to update; pass at least one option")
    try:
        config = get_state(ctx).runtime.admin.update_source(source_id, **fields)
    except SourceConfigError as exc:
        raise CLIError(str(exc)) from exc
    render_panel(f"Source {config.id}", config.model_dump(mode="json"))


def _sources_remove_command(
    ctx: typer.Context,
    source_id: str = typer.Argument(..., help="Source config identifier."),
) -> None:
    try:
        get_state(ctx).runtime.admin.delete_source(source_id)
    except SourceConfigError as exc:
        raise CLIError(str(exc)) from exc
    console.print(f"[green]Source {source_id} removed.[/green]")


institutions_app.command("list")(_institutions_list_command)
institutions_app.command("add")(_institutions_add_command)
sources_app.command("list")(_sources_list_command)
sources_app.command("add")(_sources_add_command)
sources_app.command("update")(_sources_update_command)
sources_app.command("remove")(_sources_remove_command)
