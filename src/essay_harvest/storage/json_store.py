"""Single-document JSON store persisted after every write."""

from __future__ import annotations

import json
from pathlib import Path

from ..entities import AuditEntry, Institution, PersistedPrompt, PipelineRun, SourceConfig
from ..utils.helpers import serialize_json
from ..utils.logging import get_logger
from .memory import InMemoryPromptStore

_LOGGER = get_logger(module=__name__)

_FORMAT_VERSION = 1


class JsonPromptStore(InMemoryPromptStore):
    """In-memory store mirrored to a JSON file on disk.

    Each mutation rewrites the document atomically, which keeps single-row
    writes durable without needing a database engine.
    """

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self.path = Path(path)
        if self.path.exists():
            self._load()

    def _load(self) -> None:
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        version = payload.get("format_version")
        if version != _FORMAT_VERSION:
            raise ValueError(
                f"Unsupported store format_version {version!r} in {self.path}"
            )
        for raw in payload.get("institutions", []):
            item = Institution.model_validate(raw)
            self._institutions[item.id] = item
        for raw in payload.get("prompts", []):
            prompt = PersistedPrompt.model_validate(raw)
            self._prompts[prompt.natural_key] = prompt
        self._audit = [AuditEntry.model_validate(raw) for raw in payload.get("audit", [])]
        for raw in payload.get("sources", []):
            config = SourceConfig.model_validate(raw)
            self._sources[config.id] = config
        for raw in payload.get("runs", []):
            run = PipelineRun.model_validate(raw)
            self._runs[run.id] = run
        _LOGGER.debug(
            "Loaded store",
            path=str(self.path),
            prompts=len(self._prompts),
            runs=len(self._runs),
        )

    def _changed(self) -> None:
        payload = {
            "format_version": _FORMAT_VERSION,
            "institutions": [item.model_dump(mode="json") for item in self._institutions.values()],
            "prompts": [item.model_dump(mode="json") for item in self._prompts.values()],
            "audit": [item.model_dump(mode="json") for item in self._audit],
            "sources": [item.model_dump(mode="json") for item in self._sources.values()],
            "runs": [item.model_dump(mode="json") for item in self._runs.values()],
        }
        serialize_json(payload, self.path)


__all__ = ["JsonPromptStore"]
