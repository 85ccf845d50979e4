"""Run lifecycle, calendar, admin operations and component wiring."""

from .admin import AdminService, CoverageStats, SourceConfigError, SourceFreshness, YearOverYearChange
from .calendar import application_year, due_trigger
from .runtime import Runtime, build_runtime, build_strategies
from .scheduler import PipelineScheduler

__all__ = [
    "AdminService",
    "CoverageStats",
    "PipelineScheduler",
    "Runtime",
    "SourceConfigError",
    "SourceFreshness",
    "YearOverYearChange",
    "application_year",
    "build_runtime",
    "build_strategies",
    "due_trigger",
]
