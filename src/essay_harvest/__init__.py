"""Top-level package for the essay prompt harvester."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("essay-harvest")
except PackageNotFoundError:  # pragma: no cover - running from a source checkout
    __version__ = "0.1.0"

from .config.settings import Settings, get_settings
from .entities import (
    Institution,
    PersistedPrompt,
    PipelineRun,
    PromptCandidate,
    SourceConfig,
    SourceResult,
)

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "Institution",
    "PersistedPrompt",
    "PipelineRun",
    "PromptCandidate",
    "SourceConfig",
    "SourceResult",
]
