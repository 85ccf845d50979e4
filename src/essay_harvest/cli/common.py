"""Shared helpers used across the harvester CLI modules."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, Iterable, Mapping, MutableMapping, Optional, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel

from essay_harvest.config.settings import Settings
from essay_harvest.orchestration import Runtime, build_runtime
from essay_harvest.utils.logging import get_logger

console = Console()
_LOGGER = get_logger(module=__name__)

T = TypeVar("T")


class CLIError(RuntimeError):
    """Exception raised for user-facing CLI errors."""


@dataclass
class CLIState:
    """State object attached to ``typer.Context`` for downstream commands."""

    settings: Settings
    overrides: Dict[str, Any]
    environment: str
    verbose: bool
    _runtime: Optional[Runtime] = field(default=None, repr=False)

    @property
    def runtime(self) -> Runtime:
        if self._runtime is None:
            self._runtime = build_runtime(self.settings)
        return self._runtime


def _merge_dict(dest: MutableMapping[str, Any], src: Mapping[str, Any]) -> None:
    for key, value in src.items():
        if isinstance(value, Mapping) and isinstance(dest.get(key), MutableMapping):
            _merge_dict(dest[key], value)  # type: ignore[index]
        elif isinstance(value, Mapping):
            dest[key] = dict(value)
        else:
            dest[key] = value


def parse_override(argument: str) -> Dict[str, Any]:
    """Parse dotted ``key=value`` overrides into nested dictionaries."""

    if "=" not in argument:
        raise typer.BadParameter("Overrides must be expressed as dotted.key=value")
    dotted, value = argument.split("=", 1)
    segments = [segment.strip() for segment in dotted.split(".") if segment.strip()]
    if not segments:
        raise typer.BadParameter("Override keys must not be empty")
    root: Dict[str, Any] = {}
    current = root
    for segment in segments[:-1]:
        current = current.setdefault(segment, {})
    try:
        current[segments[-1]] = json.loads(value)
    except json.JSONDecodeError:
        current[segments[-1]] = value
    return root


def merge_overrides(overrides: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for override in overrides:
        _merge_dict(result, override)
    return result


def resolve_settings(environment: str | None, overrides: Dict[str, Any]) -> Settings:
    """Construct :class:`Settings` with environment and overrides applied."""

    payload = dict(overrides)
    if environment:
        payload["environment"] = environment
    try:
        return Settings(**payload)
    except ValueError as exc:
        _LOGGER.debug("Settings rejected", error=str(exc))
        raise CLIError(f"Invalid configuration: {exc}") from exc


def configure_state(
    ctx: typer.Context,
    *,
    environment: str | None,
    overrides: Iterable[Dict[str, Any]],
    verbose: bool,
) -> CLIState:
    merged = merge_overrides(overrides)
    settings = resolve_settings(environment, merged)
    state = CLIState(
        settings=settings,
        overrides=merged,
        environment=settings.environment,
        verbose=verbose,
    )
    ctx.obj = state
    return state


def get_state(ctx: typer.Context) -> CLIState:
    """Return the previously configured :class:`CLIState`.

    Sub-apps reach the root context through ``find_root`` so commands work no
    matter how deeply they are nested.
    """

    obj = ctx.find_root().obj if ctx.obj is None else ctx.obj
    if obj is None:
        raise CLIError("CLI context is not initialised")
    if not isinstance(obj, CLIState):  # pragma: no cover - defensive guard
        raise CLIError("Unexpected CLI context payload")
    return obj


def run_async(awaitable: Awaitable[T]) -> T:
    """Drive a coroutine to completion from a synchronous command."""

    async def _runner() -> T:
        return await awaitable

    return asyncio.run(_runner())


def render_panel(title: str, content: Mapping[str, Any]) -> None:
    """Utility for rendering JSON-like mappings using Rich panels."""

    from rich.json import JSON as RichJSON

    console.print(Panel(RichJSON.from_data(content), title=title, border_style="cyan"))


def parse_indices(raw: str) -> list[int]:
    """``"0,2, 3"`` -> ``[0, 2, 3]``."""

    indices: list[int] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        if not part.isdigit():
            raise CLIError(f"Invalid candidate index '{part}'")
        indices.append(int(part))
    if not indices:
        raise CLIError("No candidate indices given")
    return indices


__all__ = [
    "CLIError",
    "CLIState",
    "configure_state",
    "console",
    "get_state",
    "merge_overrides",
    "parse_indices",
    "parse_override",
    "render_panel",
    "resolve_settings",
    "run_async",
]
