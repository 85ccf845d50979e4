"""Process-local store used by tests and one-off CLI sessions."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from ..entities import AuditEntry, Institution, PersistedPrompt, PipelineRun, SourceConfig
from .base import DuplicatePromptError, PromptStore

PromptKey = Tuple[str, int, str]


class InMemoryPromptStore(PromptStore):
    def __init__(self) -> None:
        self._institutions: Dict[str, Institution] = {}
        self._prompts: Dict[PromptKey, PersistedPrompt] = {}
        self._audit: List[AuditEntry] = []
        self._sources: Dict[str, SourceConfig] = {}
        self._runs: Dict[str, PipelineRun] = {}

    def _changed(self) -> None:
        """Hook invoked after every mutation."""

    # Institutions -------------------------------------------------------
    def add_institution(self, institution: Institution) -> Institution:
        self._institutions[institution.id] = institution.model_copy(deep=True)
        self._changed()
        return institution

    def list_institutions(self) -> List[Institution]:
        return sorted(
            (item.model_copy(deep=True) for item in self._institutions.values()),
            key=lambda item: item.name.lower(),
        )

    def get_institution(self, institution_id: str) -> Optional[Institution]:
        found = self._institutions.get(institution_id)
        return found.model_copy(deep=True) if found else None

    # Prompts ------------------------------------------------------------
    def find_prompt(
        self, institution_id: str, application_year: int, prompt_text: str
    ) -> Optional[PersistedPrompt]:
        found = self._prompts.get((institution_id, application_year, prompt_text))
        return found.model_copy(deep=True) if found else None

    def create_prompt(self, prompt: PersistedPrompt) -> PersistedPrompt:
        key = prompt.natural_key
        if key in self._prompts:
            raise DuplicatePromptError(*key)
        self._prompts[key] = prompt.model_copy(deep=True)
        self._changed()
        return prompt

    def list_prompts(
        self,
        *,
        institution_id: str | None = None,
        application_year: int | None = None,
    ) -> List[PersistedPrompt]:
        selected = [
            prompt
            for prompt in self._prompts.values()
            if (institution_id is None or prompt.institution_id == institution_id)
            and (application_year is None or prompt.application_year == application_year)
        ]
        selected.sort(key=lambda item: (item.institution_id, item.application_year, item.sort_order))
        return [prompt.model_copy(deep=True) for prompt in selected]

    def add_audit_entry(self, entry: AuditEntry) -> AuditEntry:
        self._audit.append(entry.model_copy(deep=True))
        self._changed()
        return entry

    def list_audit_entries(self, prompt_id: str | None = None) -> List[AuditEntry]:
        return [
            entry.model_copy(deep=True)
            for entry in self._audit
            if prompt_id is None or entry.prompt_id == prompt_id
        ]

    # Source configs -----------------------------------------------------
    def save_source_config(self, config: SourceConfig) -> SourceConfig:
        self._sources[config.id] = config.model_copy(deep=True)
        self._changed()
        return config

    def get_source_config(self, config_id: str) -> Optional[SourceConfig]:
        found = self._sources.get(config_id)
        return found.model_copy(deep=True) if found else None

    def delete_source_config(self, config_id: str) -> bool:
        removed = self._sources.pop(config_id, None)
        if removed is not None:
            self._changed()
        return removed is not None

    def list_source_configs(
        self,
        *,
        institution_id: str | None = None,
        active_only: bool = False,
    ) -> List[SourceConfig]:
        selected = [
            config
            for config in self._sources.values()
            if (institution_id is None or config.institution_id == institution_id)
            and (not active_only or config.is_active)
        ]
        # Highest priority first; insertion order breaks ties.
        selected.sort(key=lambda item: -item.priority)
        return [config.model_copy(deep=True) for config in selected]

    # Runs ---------------------------------------------------------------
    def save_run(self, run: PipelineRun) -> PipelineRun:
        self._runs[run.id] = run.model_copy(deep=True)
        self._changed()
        return run

    def get_run(self, run_id: str) -> Optional[PipelineRun]:
        found = self._runs.get(run_id)
        return found.model_copy(deep=True) if found else None

    def list_runs(self, limit: int | None = None) -> List[PipelineRun]:
        ordered = sorted(self._runs.values(), key=lambda item: item.started_at, reverse=True)
        if limit is not None:
            ordered = ordered[:limit]
        return [run.model_copy(deep=True) for run in ordered]


__all__ = ["InMemoryPromptStore"]
