"""Primary Typer application wiring the harvester CLI."""

from __future__ import annotations

from typing import Any, Callable, List, Optional

import typer
from rich.table import Table

from essay_harvest.utils.logging import configure_logging

from . import catalogue, dashboard, runs, scrape
from .common import CLIError, configure_state, console, parse_override


class HarvestTyper(typer.Typer):
    """Typer subclass that supports registering exception handlers."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._exception_handlers: list[tuple[type[BaseException], Callable[[BaseException], Any]]] = []

    def exception_handler(
        self, exception_type: type[BaseException]
    ) -> Callable[[Callable[[BaseException], Any]], Callable[[BaseException], Any]]:
        def decorator(handler: Callable[[BaseException], Any]) -> Callable[[BaseException], Any]:
            self._exception_handlers.append((exception_type, handler))
            return handler

        return decorator

    def _resolve_handler(self, exception: BaseException) -> Callable[[BaseException], Any] | None:
        for registered_type, handler in self._exception_handlers:
            if isinstance(exception, registered_type):
                return handler
        return None

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        try:
            return super().__call__(*args, **kwargs)
        except BaseException as exc:  # pragma: no cover - CLI surface behaviour
            handler = self._resolve_handler(exc)
            if handler is None:
                raise
            result = handler(exc)
            if isinstance(result, typer.Exit):
                raise SystemExit(result.exit_code) from exc
            if isinstance(result, BaseException):
                raise result
            return result


app = HarvestTyper(
    add_completion=False,
    help="""
    Harvest college application essay prompts, manage their sources and
    inspect pipeline runs from a unified command-line interface.
    """.strip(),
    no_args_is_help=True,
)


@app.exception_handler(CLIError)
def handle_cli_error(exception: CLIError) -> typer.Exit:
    """Render ``CLIError`` messages without stack traces."""

    console.print(f"[bold red]Error:[/bold red] {exception}")
    return typer.Exit(code=2)


@app.callback()
def main(
    ctx: typer.Context,
    environment: Optional[str] = typer.Option(
        None,
        "--environment",
        "-e",
        help="Active configuration environment (development, testing, production).",
        show_default=False,
    ),
    override: List[str] = typer.Option(  # noqa: B008 - Typer callback signature
        [],
        "--override",
        "-o",
        metavar="KEY=VALUE",
        help="Configuration override in dotted.key=value notation (repeatable).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Emit verbose diagnostic output for CLI operations.",
    ),
) -> None:
    """Configure shared CLI state prior to executing subcommands."""

    state = configure_state(
        ctx,
        environment=environment,
        overrides=[parse_override(item) for item in override],
        verbose=verbose,
    )
    configure_logging(state.settings, level="DEBUG" if verbose else None)

    if verbose:
        table = Table(title="CLI Context", show_header=False, box=None)
        table.add_row("Environment", state.environment)
        table.add_row("Store", str(state.settings.store_path))
        table.add_row("Policy version", state.settings.policy_version)
        console.print(table)


app.add_typer(runs.app, name="runs", help="Pipeline run commands")
app.add_typer(catalogue.sources_app, name="sources", help="Source-config management")
app.add_typer(catalogue.institutions_app, name="institutions", help="Institution catalogue")
app.add_typer(dashboard.app, name="dashboard", help="Coverage and change dashboards")
app.add_typer(scrape.scrape_app, name="scrape", help="Single-institution scrapes")
app.add_typer(scrape.schedule_app, name="schedule", help="Calendar scheduler")
