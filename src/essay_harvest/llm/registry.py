"""YAML prompt registry."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml

from .models import PromptMetadata


class PromptRegistry:
    """Resolve a prompt key to its active template and schema.

    The registry file maps ``prompts.<key>.active_variant`` to one entry of
    ``prompts.<key>.variants``; each variant names a Jinja2 template and a
    JSON schema relative to the prompts directory.
    """

    def __init__(self, *, registry_file: Path) -> None:
        self._registry_file = Path(registry_file)
        self._cache: Dict[str, PromptMetadata] = {}
        self._raw = self._load()

    @property
    def keys(self) -> list[str]:
        return sorted(self._raw["prompts"])

    def load_prompt(self, prompt_key: str) -> PromptMetadata:
        if prompt_key in self._cache:
            return self._cache[prompt_key]
        try:
            entry: Dict[str, Any] = self._raw["prompts"][prompt_key]
        except KeyError as exc:
            raise KeyError(f"Prompt '{prompt_key}' is not registered") from exc
        version = str(entry["active_variant"])
        variant = (entry.get("variants") or {}).get(version)
        if not variant:
            raise KeyError(f"Prompt '{prompt_key}' has no variant '{version}'")
        metadata = PromptMetadata(
            prompt_key=prompt_key,
            version=version,
            description=str(variant.get("description", "")),
            template_path=str(variant["template"]),
            schema_path=str(variant["schema"]),
        )
        self._cache[prompt_key] = metadata
        return metadata

    def _load(self) -> Dict[str, Any]:
        if not self._registry_file.exists():
            raise FileNotFoundError(f"Prompt registry not found: {self._registry_file}")
        with self._registry_file.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if "prompts" not in data:
            raise ValueError("Registry file missing 'prompts' section")
        return data


__all__ = ["PromptRegistry"]
