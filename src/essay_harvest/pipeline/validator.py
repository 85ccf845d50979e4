"""LLM judgement, translation and categorisation of extracted prompts."""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Mapping

from pydantic import BaseModel, Field

from ..config.policies import PipelinePolicy
from ..entities import PromptCandidate, PromptCategory
from ..llm import LLMRunner
from ..utils.helpers import truncate_words
from ..utils.logging import get_logger


class VerdictOrigin(str, Enum):
    DELEGATED = "DELEGATED"
    FALLBACK = "FALLBACK"


class ValidationVerdict(BaseModel):
    is_valid: bool
    confidence: float = Field(ge=0.0, le=1.0)
    translation: str | None = None
    tips: str | None = None
    category: PromptCategory | None = None
    issues: List[str] = Field(default_factory=list)
    origin: VerdictOrigin


class ExtractionValidator:
    """Ask the model whether a candidate is a real prompt.

    Whether a runner is present is decided once at construction. Without one,
    or whenever the call fails or returns something unusable, the verdict is
    a permissive fallback that keeps the candidate for human review.
    """

    def __init__(self, policy: PipelinePolicy | None = None, runner: LLMRunner | None = None) -> None:
        self.policy = policy or PipelinePolicy()
        self._runner = runner
        self._logger = get_logger(component="extraction_validator")

    @property
    def delegating(self) -> bool:
        return self._runner is not None

    async def validate(self, candidate: PromptCandidate, institution_name: str) -> ValidationVerdict:
        if self._runner is None:
            return self.fallback(candidate)
        try:
            response = await self._runner(
                "essay.validate",
                {
                    "institution": institution_name,
                    "prompt_text": candidate.prompt_text,
                    "word_limit": candidate.word_limit,
                    "max_tip_words": self.policy.max_tip_words,
                    "categories": [category.value for category in PromptCategory],
                },
            )
        except Exception as exc:
            self._logger.warning("Validation call failed", institution=institution_name, error=str(exc))
            return self.fallback(candidate, issue=str(exc))
        if not getattr(response, "ok", False):
            error = getattr(response, "error", None) or "validation call unsuccessful"
            self._logger.warning("Validation call unsuccessful", institution=institution_name, error=error)
            return self.fallback(candidate, issue=error)
        try:
            return self._delegated(response.content)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            self._logger.warning("Malformed validation payload", institution=institution_name, error=str(exc))
            return self.fallback(candidate, issue=str(exc))

    def fallback(self, candidate: PromptCandidate, *, issue: str | None = None) -> ValidationVerdict:
        confidence = candidate.confidence_score
        if confidence is None:
            confidence = self.policy.fallback_confidence
        return ValidationVerdict(
            is_valid=True,
            confidence=confidence,
            issues=[issue] if issue else [],
            origin=VerdictOrigin.FALLBACK,
        )

    def _delegated(self, payload: Mapping[str, Any]) -> ValidationVerdict:
        tips = payload.get("tips")
        if isinstance(tips, str) and tips.strip():
            tips = truncate_words(tips, self.policy.max_tip_words)
        else:
            tips = None
        translation = payload.get("translation")
        issues: List[str] = [str(item) for item in payload.get("issues") or []]
        return ValidationVerdict(
            is_valid=bool(payload["is_valid"]),
            confidence=min(1.0, max(0.0, float(payload["confidence"]))),
            translation=translation.strip() if isinstance(translation, str) and translation.strip() else None,
            tips=tips,
            category=PromptCategory.coerce(payload.get("category")),
            issues=issues,
            origin=VerdictOrigin.DELEGATED,
        )


__all__ = ["ExtractionValidator", "ValidationVerdict", "VerdictOrigin"]
