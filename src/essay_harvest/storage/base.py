"""Abstract durable store consumed by the acquisition pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from ..entities import (
    AuditEntry,
    Institution,
    PersistedPrompt,
    PipelineRun,
    SourceConfig,
)


class StoreError(RuntimeError):
    """Base class for store failures."""


class DuplicatePromptError(StoreError):
    """Raised when a prompt's natural key is already present."""

    def __init__(self, institution_id: str, application_year: int, prompt_text: str) -> None:
        super().__init__(
            f"Prompt already stored for institution={institution_id} year={application_year}"
        )
        self.institution_id = institution_id
        self.application_year = application_year
        self.prompt_text = prompt_text


class PromptStore(ABC):
    """CRUD plus natural-key lookups over institutions, prompts, sources and runs.

    Implementations return detached copies so callers never mutate stored
    state without going through a ``save_*``/``create_*`` call.
    """

    # ------------------------------------------------------------------
    # Institutions
    # ------------------------------------------------------------------
    @abstractmethod
    def add_institution(self, institution: Institution) -> Institution:
        ...

    @abstractmethod
    def list_institutions(self) -> List[Institution]:
        ...

    @abstractmethod
    def get_institution(self, institution_id: str) -> Optional[Institution]:
        ...

    def find_institution(self, name: str) -> Optional[Institution]:
        """Resolve a display name or alias, case-insensitively."""

        for institution in self.list_institutions():
            if institution.matches(name):
                return institution
        return None

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------
    @abstractmethod
    def find_prompt(
        self, institution_id: str, application_year: int, prompt_text: str
    ) -> Optional[PersistedPrompt]:
        ...

    @abstractmethod
    def create_prompt(self, prompt: PersistedPrompt) -> PersistedPrompt:
        """Insert a prompt; raises :class:`DuplicatePromptError` on a key clash."""

    @abstractmethod
    def list_prompts(
        self,
        *,
        institution_id: str | None = None,
        application_year: int | None = None,
    ) -> List[PersistedPrompt]:
        ...

    @abstractmethod
    def add_audit_entry(self, entry: AuditEntry) -> AuditEntry:
        ...

    @abstractmethod
    def list_audit_entries(self, prompt_id: str | None = None) -> List[AuditEntry]:
        ...

    # ------------------------------------------------------------------
    # Source configs
    # ------------------------------------------------------------------
    @abstractmethod
    def save_source_config(self, config: SourceConfig) -> SourceConfig:
        """Insert or replace a source config by id."""

    @abstractmethod
    def get_source_config(self, config_id: str) -> Optional[SourceConfig]:
        ...

    @abstractmethod
    def delete_source_config(self, config_id: str) -> bool:
        ...

    @abstractmethod
    def list_source_configs(
        self,
        *,
        institution_id: str | None = None,
        active_only: bool = False,
    ) -> List[SourceConfig]:
        ...

    # ------------------------------------------------------------------
    # Pipeline runs
    # ------------------------------------------------------------------
    @abstractmethod
    def save_run(self, run: PipelineRun) -> PipelineRun:
        """Insert or replace a run record by id."""

    @abstractmethod
    def get_run(self, run_id: str) -> Optional[PipelineRun]:
        ...

    @abstractmethod
    def list_runs(self, limit: int | None = None) -> List[PipelineRun]:
        """Runs ordered newest first."""


__all__ = ["DuplicatePromptError", "PromptStore", "StoreError"]
