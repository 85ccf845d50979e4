"""Domain entities for the harvester."""

from .core import (
    AuditEntry,
    ExtractionHints,
    Institution,
    PersistedPrompt,
    PipelineRun,
    PromptCandidate,
    PromptCategory,
    ProvenanceEntry,
    ReviewStatus,
    RunStateError,
    RunStatus,
    RunTrigger,
    SourceConfig,
    SourceResult,
    SourceRunStatus,
    SourceType,
)

__all__ = [
    "AuditEntry",
    "ExtractionHints",
    "Institution",
    "PersistedPrompt",
    "PipelineRun",
    "PromptCandidate",
    "PromptCategory",
    "ProvenanceEntry",
    "ReviewStatus",
    "RunStateError",
    "RunStatus",
    "RunTrigger",
    "SourceConfig",
    "SourceResult",
    "SourceRunStatus",
    "SourceType",
]
