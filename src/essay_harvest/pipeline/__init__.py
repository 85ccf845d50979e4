"""Reconciliation, validation and acquisition of essay prompts."""

from .acquisition import (
    AcquisitionService,
    InstitutionScrapeResult,
    NO_DATA_ERROR,
    PreviewCandidate,
    SaveOutcome,
    ScrapeOutcome,
    ScrapePreview,
    SourceCollection,
)
from .changes import ChangeDetector, ChangeType, PromptChange
from .reconciler import Reconciler, SourceCandidates
from .validator import ExtractionValidator, ValidationVerdict, VerdictOrigin

__all__ = [
    "AcquisitionService",
    "ChangeDetector",
    "ChangeType",
    "ExtractionValidator",
    "InstitutionScrapeResult",
    "NO_DATA_ERROR",
    "PreviewCandidate",
    "PromptChange",
    "Reconciler",
    "SaveOutcome",
    "ScrapeOutcome",
    "ScrapePreview",
    "SourceCandidates",
    "SourceCollection",
    "ValidationVerdict",
    "VerdictOrigin",
]
