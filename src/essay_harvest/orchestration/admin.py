"""Operator-facing operations: runs, source configs, dashboards and curation."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError

from ..config.policies import PipelinePolicy
from ..entities import (
    ExtractionHints,
    Institution,
    PipelineRun,
    ReviewStatus,
    SourceConfig,
    SourceRunStatus,
    SourceType,
)
from ..errors import HarvestError
from ..pipeline import AcquisitionService, ChangeDetector, ChangeType, ScrapePreview
from ..storage import PromptStore
from ..utils.logging import get_logger
from .scheduler import PipelineScheduler

_UPDATABLE_SOURCE_FIELDS = {
    "url",
    "source_kind",
    "slug",
    "extraction_group",
    "priority",
    "extraction_hints",
    "is_active",
}


class SourceConfigError(HarvestError):
    """Invalid source-config input from an operator."""

    def __init__(self, message: str) -> None:
        super().__init__(message, reason="invalid_source_config")


class CoverageStats(BaseModel):
    year: int
    total_institutions: int
    institutions_with_prompts: int
    institutions_with_verified: int
    coverage_percent: float
    total_prompts: int
    pending_review: int


class SourceFreshness(BaseModel):
    id: str
    institution: str
    source_kind: SourceType
    url: str
    extraction_group: str
    last_scraped_at: Optional[datetime] = None
    last_status: Optional[SourceRunStatus] = None
    last_error: Optional[str] = None


class YearOverYearChange(BaseModel):
    institution: str
    prompt_text: str
    change_type: ChangeType
    previous_text: Optional[str] = None


class AdminService:
    """Thin façade the CLI (or any other front end) talks to."""

    def __init__(
        self,
        store: PromptStore,
        scheduler: PipelineScheduler,
        acquisition: AcquisitionService,
        *,
        policy: PipelinePolicy | None = None,
        change_detector: ChangeDetector | None = None,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.acquisition = acquisition
        self.policy = policy or PipelinePolicy()
        self.change_detector = change_detector or ChangeDetector(self.policy.change_similarity_threshold)
        self._logger = get_logger(component="admin")

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------
    async def trigger_manual_run(self, operator_id: str | None = None) -> Dict[str, str]:
        run_id = await self.scheduler.run_pipeline(operator_id=operator_id)
        return {"run_id": run_id, "status": "RUNNING"}

    def list_runs(self, limit: int | None = None) -> List[PipelineRun]:
        return self.store.list_runs(limit or self.policy.recent_runs_limit)

    def get_run(self, run_id: str) -> PipelineRun:
        run = self.store.get_run(run_id)
        if run is None:
            raise KeyError(f"Run '{run_id}' not found")
        return run

    # ------------------------------------------------------------------
    # Institutions
    # ------------------------------------------------------------------
    def list_institutions(self) -> List[Institution]:
        return self.store.list_institutions()

    def add_institution(self, name: str, aliases: Iterable[str] = ()) -> Institution:
        name = (name or "").strip()
        if not name:
            raise SourceConfigError("Institution name is required")
        existing = self.store.find_institution(name)
        if existing is not None:
            return existing
        institution = Institution(name=name, aliases=[alias.strip() for alias in aliases if alias.strip()])
        self._logger.info("Institution added", institution=institution.name)
        return self.store.add_institution(institution)

    # ------------------------------------------------------------------
    # Source configs
    # ------------------------------------------------------------------
    def list_sources(self, institution: str | None = None) -> List[SourceConfig]:
        if institution is None:
            return self.store.list_source_configs()
        record = self._require_institution(institution)
        return self.store.list_source_configs(institution_id=record.id)

    def add_source(
        self,
        institution: str,
        url: str,
        *,
        source_kind: SourceType | str = SourceType.OFFICIAL,
        slug: str | None = None,
        extraction_group: str = "default",
        priority: int = 0,
        hints: ExtractionHints | Dict[str, Any] | None = None,
        is_active: bool = True,
    ) -> SourceConfig:
        if not institution or not institution.strip():
            raise SourceConfigError("Institution is required")
        if not url or not url.strip():
            raise SourceConfigError("URL is required")
        record = self._require_institution(institution)
        try:
            config = SourceConfig(
                institution_id=record.id,
                source_kind=source_kind,
                url=url.strip(),
                slug=slug,
                extraction_group=extraction_group,
                priority=priority,
                extraction_hints=hints,
                is_active=is_active,
            )
        except PydanticValidationError as exc:
            raise SourceConfigError(_first_error(exc)) from exc
        self._logger.info("Source config added", institution=record.name, url=config.url)
        return self.store.save_source_config(config)

    def update_source(self, source_id: str, **fields: Any) -> SourceConfig:
        config = self.store.get_source_config(source_id)
        if config is None:
            raise SourceConfigError(f"Source config '{source_id}' not found")
        unknown = set(fields) - _UPDATABLE_SOURCE_FIELDS
        if unknown:
            raise SourceConfigError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        payload = config.model_dump()
        payload.update(fields)
        try:
            updated = SourceConfig.model_validate(payload)
        except PydanticValidationError as exc:
            raise SourceConfigError(_first_error(exc)) from exc
        return self.store.save_source_config(updated)

    def delete_source(self, source_id: str) -> None:
        if not self.store.delete_source_config(source_id):
            raise SourceConfigError(f"Source config '{source_id}' not found")
        self._logger.info("Source config deleted", source_id=source_id)

    def _require_institution(self, name: str) -> Institution:
        record = self.store.find_institution(name)
        if record is None:
            raise SourceConfigError(f"Institution '{name}' is not in the catalogue")
        return record

    # ------------------------------------------------------------------
    # Dashboards
    # ------------------------------------------------------------------
    def coverage(self, year: int) -> CoverageStats:
        institutions = self.store.list_institutions()
        prompts = self.store.list_prompts(application_year=year)
        with_prompts = {prompt.institution_id for prompt in prompts}
        with_verified = {
            prompt.institution_id for prompt in prompts if prompt.review_status is ReviewStatus.VERIFIED
        }
        total = len(institutions)
        percent = round(len(with_verified) / total * 100, 1) if total else 0.0
        return CoverageStats(
            year=year,
            total_institutions=total,
            institutions_with_prompts=len(with_prompts),
            institutions_with_verified=len(with_verified),
            coverage_percent=percent,
            total_prompts=len(prompts),
            pending_review=sum(1 for prompt in prompts if prompt.review_status is ReviewStatus.PENDING),
        )

    def freshness(self) -> List[SourceFreshness]:
        names = {institution.id: institution.name for institution in self.store.list_institutions()}
        return [
            SourceFreshness(
                id=config.id,
                institution=names.get(config.institution_id, config.institution_id),
                source_kind=config.source_kind,
                url=config.url,
                extraction_group=config.extraction_group,
                last_scraped_at=config.last_run_at,
                last_status=config.last_run_status,
                last_error=config.last_run_error,
            )
            for config in self.store.list_source_configs()
        ]

    def year_over_year_changes(self, year: int) -> List[YearOverYearChange]:
        entries: List[YearOverYearChange] = []
        for institution in self.store.list_institutions():
            current = [
                prompt.prompt_text
                for prompt in self.store.list_prompts(institution_id=institution.id, application_year=year)
            ]
            previous = [
                prompt.prompt_text
                for prompt in self.store.list_prompts(institution_id=institution.id, application_year=year - 1)
            ]
            if not current and not previous:
                continue
            for change in self.change_detector.compare(current, previous):
                if change.change_type is ChangeType.UNCHANGED:
                    continue
                entries.append(
                    YearOverYearChange(
                        institution=institution.name,
                        prompt_text=change.prompt_text,
                        change_type=change.change_type,
                        previous_text=change.previous_text if change.change_type is ChangeType.MODIFIED else None,
                    )
                )
        return entries

    # ------------------------------------------------------------------
    # Curation
    # ------------------------------------------------------------------
    async def test_scrape(self, institution_name: str, year: int | None = None) -> ScrapePreview:
        return await self.acquisition.preview_institution(
            institution_name, year or self.scheduler.current_year()
        )

    def confirm_save(
        self,
        preview: ScrapePreview,
        indices: Iterable[int],
        *,
        operator_id: str | None = None,
    ) -> int:
        return self.acquisition.confirm_preview(preview, indices, operator_id=operator_id)


def _first_error(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


__all__ = [
    "AdminService",
    "CoverageStats",
    "SourceConfigError",
    "SourceFreshness",
    "YearOverYearChange",
]
