"""Configuration utilities for the harvester."""

from .policies import (
    FetchPolicy,
    LLMSettings,
    PipelinePolicy,
    Policies,
    SchedulePolicy,
    StoragePolicy,
    StrategyPolicy,
    load_policies,
)
from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "Policies",
    "load_policies",
    "FetchPolicy",
    "LLMSettings",
    "StrategyPolicy",
    "PipelinePolicy",
    "SchedulePolicy",
    "StoragePolicy",
]
