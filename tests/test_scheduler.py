"""Tests for run lifecycle, the calendar and the stale-run watchdog."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest

from essay_harvest.config.policies import SchedulePolicy
from essay_harvest.entities import Institution, PipelineRun, RunStateError, RunStatus, RunTrigger, SourceType
from essay_harvest.orchestration import PipelineScheduler, application_year, due_trigger
from essay_harvest.pipeline import AcquisitionService, ExtractionValidator

from conftest import PROMPT, CannedStrategy, no_sleep


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _scheduler(store, strategies, *, shared=None, clock=None) -> PipelineScheduler:
    acquisition = AcquisitionService(store, strategies, ExtractionValidator(), sleep=no_sleep)
    kwargs = {"shared_strategy": shared}
    if clock is not None:
        kwargs["clock"] = clock
    return PipelineScheduler(store, acquisition, **kwargs)


def _ab_catalogue(store):
    store.add_institution(Institution(name="A"))
    store.add_institution(Institution(name="B"))
    return CannedStrategy("official", SourceType.OFFICIAL, {"A": None, "B": [(PROMPT, 0.9)]})


def test_batch_run_records_tallies_and_detail(store) -> None:
    scheduler = _scheduler(store, [_ab_catalogue(store)])

    async def scenario():
        run_id = await scheduler.run_pipeline(RunTrigger.MANUAL, operator_id="ops", year=2026)
        at_return = store.get_run(run_id)
        final = await scheduler.wait_for(run_id)
        return at_return, final

    at_return, run = asyncio.run(scenario())

    assert at_return.status is RunStatus.RUNNING
    assert run.status is RunStatus.COMPLETED
    assert run.operator_id == "ops"
    assert run.application_year == 2026
    assert (run.total_institutions, run.success_count, run.failed_count, run.new_prompts_count) == (2, 1, 1, 1)
    assert [(item["institution_name"], item["success"], item["essays_found"]) for item in run.per_institution_detail] == [
        ("A", False, 0),
        ("B", True, 1),
    ]
    assert run.completed_at is not None


def test_shared_strategy_runs_once_before_the_batch(store) -> None:
    store.add_institution(Institution(name="Common App"))
    shared = CannedStrategy("commonapp", SourceType.COMMON_APP, {"Common App": [(PROMPT, 0.9)]})
    scheduler = _scheduler(store, [_ab_catalogue(store)], shared=shared)

    async def scenario():
        run_id = await scheduler.run_pipeline(year=2026)
        return await scheduler.wait_for(run_id)

    run = asyncio.run(scenario())

    assert shared.calls == ["Common App"]
    assert run.per_institution_detail[0]["institution_name"] == "Common App"
    assert run.success_count == 2 and run.new_prompts_count == 2


def test_shared_strategy_skipped_when_shared_institution_missing(store) -> None:
    shared = CannedStrategy("commonapp", SourceType.COMMON_APP, {"Common App": [(PROMPT, 0.9)]})
    scheduler = _scheduler(store, [_ab_catalogue(store)], shared=shared)

    async def scenario():
        return await scheduler.wait_for(await scheduler.run_pipeline(year=2026))

    run = asyncio.run(scenario())

    assert shared.calls == []
    assert run.total_institutions == 2


def test_unexpected_batch_error_marks_run_failed(store, monkeypatch: pytest.MonkeyPatch) -> None:
    scheduler = _scheduler(store, [_ab_catalogue(store)])

    async def explode(year: int):
        raise RuntimeError("store connection lost")

    monkeypatch.setattr(scheduler.acquisition, "scrape_all", explode)

    async def scenario():
        return await scheduler.wait_for(await scheduler.run_pipeline(year=2026))

    run = asyncio.run(scenario())

    assert run.status is RunStatus.FAILED
    assert "store connection lost" in run.error
    assert run.completed_at is not None
    with pytest.raises(RunStateError):
        run.complete([])


def test_stale_running_runs_are_failed(store) -> None:
    now = datetime(2026, 8, 2, 12, 0, tzinfo=timezone.utc)
    stale = store.save_run(PipelineRun(application_year=2026, started_at=now - timedelta(hours=7)))
    fresh = store.save_run(PipelineRun(application_year=2026, started_at=now - timedelta(minutes=5)))
    done = PipelineRun(application_year=2026, started_at=now - timedelta(days=3))
    done.complete([])
    store.save_run(done)
    scheduler = _scheduler(store, [], clock=_Clock(now))

    failed = scheduler.mark_stale_runs()

    assert failed == [stale.id]
    assert store.get_run(stale.id).status is RunStatus.FAILED
    assert "360 minutes" in store.get_run(stale.id).error
    assert store.get_run(fresh.id).status is RunStatus.RUNNING
    assert store.get_run(done.id).status is RunStatus.COMPLETED


def test_runs_list_newest_first(store) -> None:
    base = datetime(2026, 8, 1, tzinfo=timezone.utc)
    for offset in range(3):
        store.save_run(PipelineRun(application_year=2026, started_at=base + timedelta(days=offset)))

    runs = store.list_runs(limit=2)

    assert [run.started_at for run in runs] == [base + timedelta(days=2), base + timedelta(days=1)]


def test_application_year_rolls_over_in_august() -> None:
    assert application_year(date(2026, 8, 1)) == 2026
    assert application_year(date(2026, 7, 31)) == 2025
    assert application_year(date(2027, 1, 15)) == 2026


def test_due_trigger_matches_calendar_dates() -> None:
    policy = SchedulePolicy()

    assert due_trigger(date(2026, 8, 1), policy) is RunTrigger.SCHEDULED_PRE_SEASON
    assert due_trigger(date(2027, 1, 15), policy) is RunTrigger.SCHEDULED_POST_RD
    assert due_trigger(date(2026, 10, 19), policy) is None


def test_schedule_policy_rejects_bad_dates() -> None:
    with pytest.raises(ValueError):
        SchedulePolicy(pre_season="13-01")
    with pytest.raises(ValueError):
        SchedulePolicy(pre_season="01-15", post_rd="01-15")


def test_tick_starts_one_calendar_run_per_day(store) -> None:
    clock = _Clock(datetime(2026, 8, 1, 3, 0, tzinfo=timezone.utc))
    scheduler = _scheduler(store, [_ab_catalogue(store)], clock=clock)

    async def scenario():
        first = await scheduler.tick()
        await scheduler.wait_for(first)
        second = await scheduler.tick()
        clock.now = datetime(2026, 8, 2, 3, 0, tzinfo=timezone.utc)
        third = await scheduler.tick()
        return first, second, third

    first, second, third = asyncio.run(scenario())

    assert first is not None and second is None and third is None
    run = store.get_run(first)
    assert run.trigger is RunTrigger.SCHEDULED_PRE_SEASON
    assert run.application_year == 2026
    assert run.status is RunStatus.COMPLETED


def test_serve_checks_calendar_on_start(store) -> None:
    clock = _Clock(datetime(2027, 1, 15, 9, 0, tzinfo=timezone.utc))
    scheduler = _scheduler(store, [_ab_catalogue(store)], clock=clock)

    async def scenario():
        stop = asyncio.Event()
        stop.set()
        await scheduler.serve(stop)
        for run_id in scheduler.active_run_ids:
            await scheduler.wait_for(run_id)

    asyncio.run(scenario())

    (run,) = store.list_runs()
    assert run.trigger is RunTrigger.SCHEDULED_POST_RD
    assert run.application_year == 2026
    assert run.status is RunStatus.COMPLETED
