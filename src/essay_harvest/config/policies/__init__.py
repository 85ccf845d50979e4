"""Policy configuration primitives for the harvesting pipeline."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Sequence

import yaml
from pydantic import BaseModel, Field, model_validator

from .harvest import PipelinePolicy, SchedulePolicy, StoragePolicy, StrategyPolicy
from .llm import LLMSettings, ProviderProfileSettings, RegistrySettings
from .web import FetchPolicy, WebPolicy

POLICY_ENV_PREFIX = "HARVEST_POLICY__"


class Policies(BaseModel):
    """Root policy container."""

    policy_version: str = Field(default="2026-08-01")
    web: WebPolicy = Field(default_factory=WebPolicy)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    strategies: StrategyPolicy = Field(default_factory=StrategyPolicy)
    pipeline: PipelinePolicy = Field(default_factory=PipelinePolicy)
    schedule: SchedulePolicy = Field(default_factory=SchedulePolicy)
    storage: StoragePolicy = Field(default_factory=StoragePolicy)

    @model_validator(mode="after")
    def _validate_policy_version(self) -> "Policies":
        if not self.policy_version:
            raise ValueError("policy_version must be provided")
        return self


def _ensure_nested_mapping(
    cursor: MutableMapping[str, Any], part: str, full_path: Sequence[str]
) -> MutableMapping[str, Any]:
    existing = cursor.get(part)
    if existing is None:
        created: MutableMapping[str, Any] = {}
        cursor[part] = created
        return created
    if not isinstance(existing, MutableMapping):
        raise ValueError(
            f"Cannot override policy path '{'/'.join(full_path)}' because "
            f"segment '{part}' resolves to a non-mapping value"
        )
    return existing


def _resolve_env_overrides(raw: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Apply ``HARVEST_POLICY__`` environment variable overrides.

    ``HARVEST_POLICY__PIPELINE__DELAY_BETWEEN_SOURCES_SECONDS=0`` sets
    ``pipeline.delay_between_sources_seconds``. Values are JSON-decoded when
    possible and kept as strings otherwise.
    """

    for key, value in os.environ.items():
        if not key.startswith(POLICY_ENV_PREFIX):
            continue
        parts = [segment.lower() for segment in key[len(POLICY_ENV_PREFIX) :].split("__") if segment]
        if not parts:
            continue
        cursor: MutableMapping[str, Any] = raw
        for index, part in enumerate(parts[:-1], start=1):
            cursor = _ensure_nested_mapping(cursor, part, parts[: index + 1])
        try:
            parsed = json.loads(value)
        except (TypeError, json.JSONDecodeError):
            parsed = value
        cursor[parts[-1]] = parsed
    return raw


def load_policies(source: os.PathLike[str] | str | Mapping[str, Any]) -> Policies:
    """Load policies from a mapping or YAML file, then apply env overrides."""

    if isinstance(source, Mapping):
        raw: MutableMapping[str, Any] = dict(source)
    else:
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Policy file not found: {path}")
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, MutableMapping):
            raise ValueError(f"Policy file '{path}' must contain a mapping at the top level")
        raw = dict(loaded)
    return Policies.model_validate(_resolve_env_overrides(raw))


__all__ = [
    "Policies",
    "load_policies",
    "FetchPolicy",
    "WebPolicy",
    "LLMSettings",
    "ProviderProfileSettings",
    "RegistrySettings",
    "StrategyPolicy",
    "PipelinePolicy",
    "SchedulePolicy",
    "StoragePolicy",
]
