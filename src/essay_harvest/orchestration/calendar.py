"""Application-cycle calendar helpers."""

from __future__ import annotations

from datetime import date
from typing import Optional

from ..config.policies import SchedulePolicy
from ..entities import RunTrigger


def application_year(today: date, cycle_start_month: int = 8) -> int:
    """Cycle year a date belongs to; the ``2026`` cycle runs Aug 2026 to Jul 2027."""

    return today.year if today.month >= cycle_start_month else today.year - 1


def due_trigger(today: date, policy: SchedulePolicy) -> Optional[RunTrigger]:
    """Calendar trigger falling on ``today``, if any."""

    stamp = today.strftime("%m-%d")
    if stamp == policy.pre_season:
        return RunTrigger.SCHEDULED_PRE_SEASON
    if stamp == policy.post_rd:
        return RunTrigger.SCHEDULED_POST_RD
    return None


__all__ = ["application_year", "due_trigger"]
