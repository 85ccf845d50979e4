"""Policies governing strategies, acquisition, scheduling and storage."""

from __future__ import annotations

import re
from typing import Dict, List, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

_MONTH_DAY_RE = re.compile(r"^(0[1-9]|1[0-2])-(0[1-9]|[12]\d|3[01])$")
_CLOCK_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class StrategyPolicy(BaseModel):
    """Tuning knobs shared by the source strategies.

    ``official_urls`` and ``aggregator_slugs`` extend (and override) the
    tables compiled into the strategy modules.
    """

    official_urls: Dict[str, str] = Field(default_factory=dict)
    aggregator_slugs: Dict[str, str] = Field(default_factory=dict)
    aggregator_base_url: str = Field(default="https://www.collegevine.com/schools")
    commonapp_url: str = Field(default="https://www.commonapp.org/apply/essay-prompts")
    shared_institution_name: str = Field(default="Common App", min_length=1)
    prefix_dedup_length: int = Field(default=50, ge=10)
    max_candidates: int = Field(default=10, ge=1)
    official_confidence: float = Field(default=0.85, ge=0.0, le=1.0)
    aggregator_confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    commonapp_fallback_confidence: float = Field(default=0.9, ge=0.0, le=1.0)
    llm_default_confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    min_prompt_length: int = Field(default=20, ge=1)
    max_prompt_length: int = Field(default=1500, ge=50)
    max_content_length: int = Field(default=8000, ge=500)
    raw_snippet_length: int = Field(default=5000, ge=0)


class PipelinePolicy(BaseModel):
    """Acquisition service and run bookkeeping settings."""

    sources: List[Literal["OFFICIAL", "CONFIGURED", "AGGREGATOR"]] = Field(
        default_factory=lambda: ["OFFICIAL", "CONFIGURED", "AGGREGATOR"]
    )
    delay_between_sources_seconds: float = Field(default=2.0, ge=0.0)
    delay_between_institutions_seconds: float = Field(default=3.0, ge=0.0)
    reconcile_key_length: int = Field(default=80, ge=10)
    verified_confidence_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    fallback_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    max_tip_words: int = Field(default=50, ge=1)
    change_similarity_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    stale_run_minutes: int = Field(default=360, ge=1)
    recent_runs_limit: int = Field(default=10, ge=1)


class SchedulePolicy(BaseModel):
    """Calendar triggers for full-catalogue runs.

    Dates are ``MM-DD`` strings compared with the scheduler clock (UTC);
    ``tick_time`` is local wall-clock time as understood by ``schedule``.
    The application year rolls over on ``cycle_start_month``.
    """

    pre_season: str = Field(default="08-01")
    post_rd: str = Field(default="01-15")
    tick_time: str = Field(default="03:00")
    poll_interval_seconds: int = Field(default=60, ge=1)
    cycle_start_month: int = Field(default=8, ge=1, le=12)

    @field_validator("pre_season", "post_rd")
    @classmethod
    def _validate_month_day(cls, value: str) -> str:
        if not _MONTH_DAY_RE.match(value):
            raise ValueError(f"Expected MM-DD, got '{value}'")
        return value

    @field_validator("tick_time")
    @classmethod
    def _validate_clock(cls, value: str) -> str:
        if not _CLOCK_RE.match(value):
            raise ValueError(f"Expected HH:MM, got '{value}'")
        return value

    @model_validator(mode="after")
    def _distinct_dates(self) -> "SchedulePolicy":
        if self.pre_season == self.post_rd:
            raise ValueError("pre_season and post_rd must fall on different days")
        return self


class StoragePolicy(BaseModel):
    """Durable store selection."""

    backend: Literal["memory", "json"] = Field(default="json")
    path: str = Field(default="harvest-store.json", min_length=1)
