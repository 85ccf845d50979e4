"""CLI package exposing the primary Typer application."""

from __future__ import annotations

from .common import CLIState, console, get_state
from .main import app

__all__ = ["app", "CLIState", "console", "get_state"]
