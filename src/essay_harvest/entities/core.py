"""Core domain entities used throughout the harvesting pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _new_id() -> str:
    return uuid4().hex


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PromptCategory(str, Enum):
    """Coarse prompt category shared by extractors and the validator."""

    COMMON_APP = "COMMON_APP"
    SUPPLEMENT = "SUPPLEMENT"
    WHY_US = "WHY_US"
    SHORT_ANSWER = "SHORT_ANSWER"
    ACTIVITY = "ACTIVITY"
    OPTIONAL = "OPTIONAL"

    @classmethod
    def coerce(cls, value: Any, default: "PromptCategory | None" = None) -> "PromptCategory | None":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                return default
        return default


class SourceType(str, Enum):
    OFFICIAL = "OFFICIAL"
    CONFIGURED = "CONFIGURED"
    AGGREGATOR = "AGGREGATOR"
    COMMON_APP = "COMMON_APP"
    MANUAL = "MANUAL"


class ReviewStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class RunTrigger(str, Enum):
    MANUAL = "MANUAL"
    SCHEDULED_PRE_SEASON = "SCHEDULED_PRE_SEASON"
    SCHEDULED_POST_RD = "SCHEDULED_POST_RD"


class RunStatus(str, Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class SourceRunStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class PromptCandidate(BaseModel):
    """Unvalidated prompt extraction; a value type identified by its text."""

    model_config = ConfigDict(frozen=True)

    prompt_text: str = Field(..., min_length=1)
    translated_text: str | None = None
    word_limit: int | None = Field(default=None, ge=1)
    category: PromptCategory = PromptCategory.SUPPLEMENT
    is_required: bool = True
    confidence_score: float | None = Field(default=None, ge=0.0, le=1.0)

    @field_validator("prompt_text")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        cleaned = " ".join(value.split())
        if not cleaned:
            raise ValueError("prompt_text must contain non-whitespace characters")
        return cleaned


class SourceResult(BaseModel):
    """Output of one strategy execution for one institution."""

    institution_name: str
    application_year: int
    candidates: List[PromptCandidate] = Field(default_factory=list)
    source_url: str
    source_type: SourceType
    raw_snippet: str | None = None


class ProvenanceEntry(BaseModel):
    source_type: SourceType
    source_url: str
    raw_snippet: str | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    scraped_at: datetime = Field(default_factory=_utc_now)


class Institution(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = Field(..., min_length=1)
    aliases: List[str] = Field(default_factory=list)

    def matches(self, name: str) -> bool:
        wanted = name.strip().lower()
        return wanted == self.name.lower() or any(wanted == alias.lower() for alias in self.aliases)


class PersistedPrompt(BaseModel):
    """Durable prompt record keyed by (institution, year, exact text)."""

    id: str = Field(default_factory=_new_id)
    institution_id: str
    application_year: int
    category: PromptCategory = PromptCategory.SUPPLEMENT
    prompt_text: str = Field(..., min_length=1)
    translated_text: str | None = None
    word_limit: int | None = None
    is_required: bool = True
    sort_order: int = 0
    review_status: ReviewStatus = ReviewStatus.PENDING
    advisory_tips: str | None = None
    topic_tag: str | None = None
    provenance: List[ProvenanceEntry] = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=_utc_now)

    @property
    def natural_key(self) -> tuple[str, int, str]:
        return (self.institution_id, self.application_year, self.prompt_text)


class AuditEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    prompt_id: str
    action: str = "CREATE"
    from_status: ReviewStatus | None = None
    to_status: ReviewStatus | None = None
    operator_type: str = "PIPELINE"
    operator_id: str | None = None
    created_at: datetime = Field(default_factory=_utc_now)


class ExtractionHints(BaseModel):
    """Admin-supplied narrowing rules for a configured source page."""

    css_selectors: List[str] = Field(default_factory=list)
    remove_selectors: List[str] = Field(default_factory=list)
    llm_hint: str | None = None
    max_content_length: int | None = Field(default=None, ge=500)


class SourceConfig(BaseModel):
    """Admin-managed page configuration consumed by the configured strategy."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=_new_id)
    institution_id: str = Field(..., min_length=1)
    source_kind: SourceType = SourceType.OFFICIAL
    url: str = Field(..., min_length=1)
    slug: str | None = None
    extraction_group: str = "default"
    priority: int = 0
    extraction_hints: ExtractionHints | None = None
    is_active: bool = True
    last_run_at: datetime | None = None
    last_run_status: SourceRunStatus | None = None
    last_run_error: str | None = None

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned.startswith(("http://", "https://")):
            raise ValueError("url must be an absolute http(s) URL")
        return cleaned


class RunStateError(RuntimeError):
    """Raised when a pipeline run is moved out of a terminal state."""


class PipelineRun(BaseModel):
    """Durable record of one full-catalogue run."""

    id: str = Field(default_factory=_new_id)
    trigger: RunTrigger = RunTrigger.MANUAL
    application_year: int
    status: RunStatus = RunStatus.RUNNING
    total_institutions: int = 0
    success_count: int = 0
    failed_count: int = 0
    new_prompts_count: int = 0
    changed_prompts_count: int = 0
    per_institution_detail: List[Dict[str, Any]] = Field(default_factory=list)
    operator_id: str | None = None
    error: str | None = None
    started_at: datetime = Field(default_factory=_utc_now)
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not RunStatus.RUNNING

    def complete(self, detail: List[Dict[str, Any]], *, finished_at: datetime | None = None) -> None:
        """Record final tallies; only legal from ``RUNNING``."""

        self._require_running()
        self.per_institution_detail = [dict(item) for item in detail]
        self.total_institutions = len(detail)
        self.success_count = sum(1 for item in detail if item.get("success"))
        self.failed_count = self.total_institutions - self.success_count
        self.new_prompts_count = sum(int(item.get("essays_found", 0)) for item in detail)
        self.changed_prompts_count = sum(int(item.get("changed", 0)) for item in detail)
        self.status = RunStatus.COMPLETED
        self.completed_at = finished_at or _utc_now()

    def fail(self, error: str, *, finished_at: datetime | None = None) -> None:
        self._require_running()
        self.status = RunStatus.FAILED
        self.error = error
        self.completed_at = finished_at or _utc_now()

    def _require_running(self) -> None:
        if self.is_terminal:
            raise RunStateError(f"Run {self.id} is already {self.status.value}")


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
