"""Per-institution and batch acquisition of essay prompts."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from ..config.policies import PipelinePolicy
from ..entities import (
    AuditEntry,
    Institution,
    PersistedPrompt,
    PromptCandidate,
    ProvenanceEntry,
    ReviewStatus,
    SourceResult,
)
from ..storage import DuplicatePromptError, PromptStore
from ..strategies import ScrapeStrategy
from ..utils.logging import get_logger
from .changes import ChangeDetector, ChangeType
from .reconciler import Reconciler, SourceCandidates
from .validator import ExtractionValidator, ValidationVerdict

Sleep = Callable[[float], Awaitable[None]]

NO_DATA_ERROR = "No data found from any source"


class ScrapeOutcome(str, Enum):
    FOUND = "FOUND"
    EMPTY = "EMPTY"


class SaveOutcome(str, Enum):
    CREATED = "CREATED"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    INVALID = "INVALID"


@dataclass
class SourceCollection:
    outcome: ScrapeOutcome
    results: List[SourceResult] = field(default_factory=list)


class InstitutionScrapeResult(BaseModel):
    """Summary recorded per institution in a run's detail array."""

    institution_name: str
    success: bool
    essays_found: int = 0
    changed: int = 0
    error: Optional[str] = None

    def as_detail(self) -> Dict[str, object]:
        return self.model_dump(mode="json")


class PreviewCandidate(BaseModel):
    index: int
    candidate: PromptCandidate
    verdict: ValidationVerdict
    change_type: ChangeType
    previous_text: Optional[str] = None


class ScrapePreview(BaseModel):
    """Result of a test scrape, kept by the caller until it confirms a subset."""

    institution_name: str
    application_year: int
    candidates: List[PreviewCandidate] = Field(default_factory=list)
    sources: List[SourceResult] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def raw_preview(self) -> Optional[str]:
        for source in self.sources:
            if source.raw_snippet:
                return source.raw_snippet[:500]
        return None


class AcquisitionService:
    """Run strategies, reconcile, validate and persist prompts.

    Strategies run one after another with a politeness delay in between.
    Strategy exceptions are logged and count as "no result". Persistence is
    per prompt; a failing write is logged and the remaining candidates are
    still processed.
    """

    def __init__(
        self,
        store: PromptStore,
        strategies: Sequence[ScrapeStrategy],
        validator: ExtractionValidator,
        *,
        policy: PipelinePolicy | None = None,
        reconciler: Reconciler | None = None,
        change_detector: ChangeDetector | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.store = store
        self.strategies = list(strategies)
        self.validator = validator
        self.policy = policy or PipelinePolicy()
        self.reconciler = reconciler or Reconciler(self.policy.reconcile_key_length)
        self.change_detector = change_detector or ChangeDetector(self.policy.change_similarity_threshold)
        self._sleep = sleep
        self._logger = get_logger(component="acquisition")

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------
    def known_institutions(self) -> List[str]:
        """Union of every strategy's configured institutions, first-seen order."""

        seen: Dict[str, str] = {}
        for strategy in self.strategies:
            for name in strategy.configured_institutions():
                seen.setdefault(name.strip().lower(), name)
        return list(seen.values())

    async def collect(
        self,
        institution_name: str,
        year: int,
        strategies: Sequence[ScrapeStrategy] | None = None,
    ) -> SourceCollection:
        selected = list(strategies) if strategies is not None else self.strategies
        results: List[SourceResult] = []
        for position, strategy in enumerate(selected):
            if position:
                await self._sleep(self.policy.delay_between_sources_seconds)
            try:
                result = await strategy.scrape(institution_name, year)
            except Exception as exc:
                self._logger.warning(
                    "Strategy failed",
                    institution=institution_name,
                    strategy=strategy.name,
                    error=str(exc),
                )
                continue
            if result is not None and result.candidates:
                results.append(result)
        outcome = ScrapeOutcome.FOUND if results else ScrapeOutcome.EMPTY
        return SourceCollection(outcome=outcome, results=results)

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------
    async def scrape_institution(
        self,
        institution_name: str,
        year: int,
        strategies: Sequence[ScrapeStrategy] | None = None,
    ) -> InstitutionScrapeResult:
        institution = self.store.find_institution(institution_name)
        if institution is None:
            self._logger.warning("Institution not in catalogue", institution=institution_name)
            return InstitutionScrapeResult(
                institution_name=institution_name,
                success=False,
                error=f"Institution '{institution_name}' is not in the catalogue",
            )
        self._logger.info("Starting institution scrape", institution=institution_name, year=year)
        collection = await self.collect(institution_name, year, strategies)
        return await self._process(institution, year, collection)

    async def scrape_shared(
        self,
        strategy: ScrapeStrategy,
        year: int,
        *,
        institution_name: str,
    ) -> InstitutionScrapeResult:
        """Run a cross-institution strategy once and store under ``institution_name``."""

        collection = await self.collect(institution_name, year, [strategy])
        institution = self.store.find_institution(institution_name)
        if institution is None:
            self._logger.warning("Shared prompts not stored; institution missing", institution=institution_name)
            return InstitutionScrapeResult(
                institution_name=institution_name,
                success=False,
                error=f"Institution '{institution_name}' is not in the catalogue",
            )
        return await self._process(institution, year, collection)

    async def scrape_all(self, year: int) -> List[InstitutionScrapeResult]:
        names = self.known_institutions()
        self._logger.info("Starting batch scrape", institutions=len(names), year=year)
        summaries: List[InstitutionScrapeResult] = []
        for position, name in enumerate(names):
            if position:
                await self._sleep(self.policy.delay_between_institutions_seconds)
            try:
                summary = await self.scrape_institution(name, year)
            except Exception as exc:
                self._logger.exception("Institution scrape crashed", institution=name)
                summary = InstitutionScrapeResult(institution_name=name, success=False, error=str(exc))
            summaries.append(summary)
        succeeded = sum(1 for item in summaries if item.success)
        self._logger.info("Batch scrape complete", succeeded=succeeded, total=len(summaries))
        return summaries

    async def _process(
        self,
        institution: Institution,
        year: int,
        collection: SourceCollection,
    ) -> InstitutionScrapeResult:
        if collection.outcome is ScrapeOutcome.EMPTY:
            self._logger.info("No data found", institution=institution.name)
            return InstitutionScrapeResult(institution_name=institution.name, success=False, error=NO_DATA_ERROR)

        merged = self.reconciler.merge(SourceCandidates.from_result(result) for result in collection.results)
        previous = self._texts(institution, year - 1)
        created = 0
        changed = 0
        for index, candidate in enumerate(merged):
            verdict = await self.validator.validate(candidate, institution.name)
            try:
                outcome = self.save_candidate(
                    institution,
                    year,
                    candidate,
                    verdict,
                    sort_order=index,
                    sources=collection.results,
                )
            except Exception:
                self._logger.exception("Failed to persist prompt", institution=institution.name, index=index)
                continue
            if outcome is SaveOutcome.CREATED:
                created += 1
                if self.change_detector.classify(candidate.prompt_text, previous).change_type is ChangeType.MODIFIED:
                    changed += 1
        self._logger.info(
            "Institution scrape complete",
            institution=institution.name,
            candidates=len(merged),
            created=created,
        )
        return InstitutionScrapeResult(
            institution_name=institution.name,
            success=True,
            essays_found=created,
            changed=changed,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def save_candidate(
        self,
        institution: Institution,
        year: int,
        candidate: PromptCandidate,
        verdict: ValidationVerdict,
        *,
        sort_order: int,
        sources: Sequence[SourceResult],
        operator_type: str = "PIPELINE",
        operator_id: str | None = None,
        require_valid: bool = True,
    ) -> SaveOutcome:
        if require_valid and not verdict.is_valid:
            self._logger.info("Skipping invalid prompt", institution=institution.name, issues=verdict.issues)
            return SaveOutcome.INVALID
        if self.store.find_prompt(institution.id, year, candidate.prompt_text) is not None:
            self._logger.debug("Prompt already stored", institution=institution.name)
            return SaveOutcome.ALREADY_EXISTS

        status = (
            ReviewStatus.VERIFIED
            if verdict.confidence >= self.policy.verified_confidence_threshold
            else ReviewStatus.PENDING
        )
        prompt = PersistedPrompt(
            institution_id=institution.id,
            application_year=year,
            category=verdict.category or candidate.category,
            prompt_text=candidate.prompt_text,
            translated_text=verdict.translation or candidate.translated_text,
            word_limit=candidate.word_limit,
            is_required=candidate.is_required,
            sort_order=sort_order,
            review_status=status,
            advisory_tips=verdict.tips,
            provenance=self._provenance(candidate, sources),
        )
        try:
            self.store.create_prompt(prompt)
        except DuplicatePromptError:
            return SaveOutcome.ALREADY_EXISTS
        self.store.add_audit_entry(
            AuditEntry(
                prompt_id=prompt.id,
                action="CREATE",
                to_status=status,
                operator_type=operator_type,
                operator_id=operator_id,
            )
        )
        return SaveOutcome.CREATED

    def _texts(self, institution: Institution, year: int) -> List[str]:
        prompts = self.store.list_prompts(institution_id=institution.id, application_year=year)
        return [prompt.prompt_text for prompt in prompts]

    def _provenance(self, candidate: PromptCandidate, sources: Iterable[SourceResult]) -> List[ProvenanceEntry]:
        key = self.reconciler.key(candidate)
        entries: List[ProvenanceEntry] = []
        for source in sources:
            confidence = candidate.confidence_score
            for reported in source.candidates:
                if self.reconciler.key(reported) == key:
                    confidence = reported.confidence_score
                    break
            entries.append(
                ProvenanceEntry(
                    source_type=source.source_type,
                    source_url=source.source_url,
                    raw_snippet=source.raw_snippet,
                    confidence=confidence,
                )
            )
        return entries

    # ------------------------------------------------------------------
    # Human-in-the-loop curation
    # ------------------------------------------------------------------
    async def preview_institution(
        self,
        institution_name: str,
        year: int,
        strategies: Sequence[ScrapeStrategy] | None = None,
    ) -> ScrapePreview:
        """Scrape, reconcile and validate without persisting anything."""

        institution = self.store.find_institution(institution_name)
        if institution is None:
            return ScrapePreview(
                institution_name=institution_name,
                application_year=year,
                error=f"Institution '{institution_name}' is not in the catalogue",
            )
        collection = await self.collect(institution.name, year, strategies)
        if collection.outcome is ScrapeOutcome.EMPTY:
            return ScrapePreview(institution_name=institution.name, application_year=year, error=NO_DATA_ERROR)

        known = self._texts(institution, year) + self._texts(institution, year - 1)
        merged = self.reconciler.merge(SourceCandidates.from_result(result) for result in collection.results)
        items: List[PreviewCandidate] = []
        for index, candidate in enumerate(merged):
            verdict = await self.validator.validate(candidate, institution.name)
            change = self.change_detector.classify(candidate.prompt_text, known)
            items.append(
                PreviewCandidate(
                    index=index,
                    candidate=candidate,
                    verdict=verdict,
                    change_type=change.change_type,
                    previous_text=change.previous_text if change.change_type is ChangeType.MODIFIED else None,
                )
            )
        return ScrapePreview(
            institution_name=institution.name,
            application_year=year,
            candidates=items,
            sources=collection.results,
        )

    def confirm_preview(
        self,
        preview: ScrapePreview,
        selected: Iterable[int],
        *,
        operator_id: str | None = None,
    ) -> int:
        """Persist the chosen preview entries; returns how many were created.

        Selection is a human decision, so the validator's verdict does not veto
        it; natural-key dedup still applies.
        """

        institution = self.store.find_institution(preview.institution_name)
        if institution is None:
            raise KeyError(f"Institution '{preview.institution_name}' is not in the catalogue")
        by_index = {item.index: item for item in preview.candidates}
        chosen: List[PreviewCandidate] = []
        for index in selected:
            if index not in by_index:
                raise IndexError(f"Preview has no candidate #{index}")
            chosen.append(by_index[index])
        created = 0
        for item in chosen:
            outcome = self.save_candidate(
                institution,
                preview.application_year,
                item.candidate,
                item.verdict,
                sort_order=item.index,
                sources=preview.sources,
                operator_type="ADMIN",
                operator_id=operator_id,
                require_valid=False,
            )
            if outcome is SaveOutcome.CREATED:
                created += 1
        self._logger.info("Preview confirmed", institution=institution.name, created=created)
        return created


__all__ = [
    "AcquisitionService",
    "InstitutionScrapeResult",
    "NO_DATA_ERROR",
    "PreviewCandidate",
    "SaveOutcome",
    "ScrapeOutcome",
    "ScrapePreview",
    "SourceCollection",
]
