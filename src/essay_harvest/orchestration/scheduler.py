"""Pipeline run lifecycle: trigger, detached execution and bookkeeping."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

import schedule

from ..config.policies import PipelinePolicy, SchedulePolicy
from ..entities import PipelineRun, RunStateError, RunStatus, RunTrigger
from ..pipeline import AcquisitionService
from ..storage import PromptStore
from ..strategies import ScrapeStrategy
from ..utils.helpers import utc_now
from ..utils.logging import get_logger, logging_context
from .calendar import application_year, due_trigger

Clock = Callable[[], datetime]


class PipelineScheduler:
    """Create run records and execute full-catalogue batches in the background.

    ``run_pipeline`` persists a ``RUNNING`` record before any network I/O and
    returns its id at once; the batch runs as a detached asyncio task. The
    run record is the only synchronisation point, so callers poll it.
    Concurrent runs are not mutually excluded.

    An unexpected exception inside the batch marks the run ``FAILED`` with
    the error text, and :meth:`mark_stale_runs` fails runs that stayed
    ``RUNNING`` beyond ``stale_run_minutes``.
    """

    def __init__(
        self,
        store: PromptStore,
        acquisition: AcquisitionService,
        *,
        shared_strategy: ScrapeStrategy | None = None,
        shared_institution_name: str = "Common App",
        pipeline_policy: PipelinePolicy | None = None,
        schedule_policy: SchedulePolicy | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.acquisition = acquisition
        self.shared_strategy = shared_strategy
        self.shared_institution_name = shared_institution_name
        self.pipeline_policy = pipeline_policy or PipelinePolicy()
        self.schedule_policy = schedule_policy or SchedulePolicy()
        self._clock = clock
        self._tasks: Dict[str, asyncio.Task] = {}
        self._logger = get_logger(component="scheduler")

    def current_year(self) -> int:
        return application_year(self._clock().date(), self.schedule_policy.cycle_start_month)

    async def run_pipeline(
        self,
        trigger: RunTrigger = RunTrigger.MANUAL,
        operator_id: str | None = None,
        *,
        year: int | None = None,
    ) -> str:
        """Record a ``RUNNING`` run, launch the batch and return the run id."""

        run = PipelineRun(
            trigger=trigger,
            application_year=year or self.current_year(),
            operator_id=operator_id,
            started_at=self._clock(),
        )
        self.store.save_run(run)
        task = asyncio.create_task(self._execute(run.id), name=f"pipeline-run-{run.id}")
        self._tasks[run.id] = task
        task.add_done_callback(lambda _task, run_id=run.id: self._tasks.pop(run_id, None))
        self._logger.info(
            "Pipeline run triggered",
            run_id=run.id,
            trigger=trigger.value,
            year=run.application_year,
        )
        return run.id

    async def wait_for(self, run_id: str) -> Optional[PipelineRun]:
        task = self._tasks.get(run_id)
        if task is not None:
            await task
        return self.store.get_run(run_id)

    @property
    def active_run_ids(self) -> List[str]:
        return list(self._tasks)

    async def _execute(self, run_id: str) -> None:
        with logging_context(run_id=run_id, step="batch"):
            try:
                await self._run_batch(run_id)
            except Exception as exc:
                self._logger.exception("Pipeline run crashed", run_id=run_id)
                self._fail(run_id, f"{type(exc).__name__}: {exc}")

    async def _run_batch(self, run_id: str) -> None:
        run = self._load(run_id)
        detail: List[Dict[str, object]] = []
        if self.shared_strategy is not None:
            if self.store.find_institution(self.shared_institution_name) is None:
                self._logger.warning(
                    "Shared institution not in catalogue; shared prompts skipped",
                    institution=self.shared_institution_name,
                )
            else:
                shared = await self.acquisition.scrape_shared(
                    self.shared_strategy,
                    run.application_year,
                    institution_name=self.shared_institution_name,
                )
                detail.append(shared.as_detail())
        summaries = await self.acquisition.scrape_all(run.application_year)
        detail.extend(summary.as_detail() for summary in summaries)

        run = self._load(run_id)
        try:
            run.complete(detail, finished_at=self._clock())
        except RunStateError:
            self._logger.warning("Run finished after being closed", run_id=run_id, status=run.status.value)
            return
        self.store.save_run(run)
        self._logger.info(
            "Pipeline run completed",
            run_id=run_id,
            succeeded=run.success_count,
            failed=run.failed_count,
            new_prompts=run.new_prompts_count,
        )

    def _load(self, run_id: str) -> PipelineRun:
        run = self.store.get_run(run_id)
        if run is None:
            raise KeyError(f"Run {run_id} disappeared from the store")
        return run

    def _fail(self, run_id: str, error: str) -> None:
        run = self.store.get_run(run_id)
        if run is None or run.is_terminal:
            return
        run.fail(error, finished_at=self._clock())
        self.store.save_run(run)

    def mark_stale_runs(self, max_age: timedelta | None = None) -> List[str]:
        """Fail ``RUNNING`` runs older than ``max_age``; returns their ids."""

        limit = max_age or timedelta(minutes=self.pipeline_policy.stale_run_minutes)
        now = self._clock()
        failed: List[str] = []
        for run in self.store.list_runs():
            if run.status is not RunStatus.RUNNING or run.id in self._tasks:
                continue
            if now - run.started_at <= limit:
                continue
            minutes = int(limit.total_seconds() // 60)
            run.fail(f"Run exceeded {minutes} minutes without completing", finished_at=now)
            self.store.save_run(run)
            failed.append(run.id)
            self._logger.warning("Marked stale run as failed", run_id=run.id)
        return failed

    # ------------------------------------------------------------------
    # Calendar
    # ------------------------------------------------------------------
    async def tick(self) -> Optional[str]:
        """Start the calendar run due today unless one already started today."""

        now = self._clock()
        trigger = due_trigger(now.date(), self.schedule_policy)
        if trigger is None:
            return None
        for run in self.store.list_runs():
            if run.trigger is trigger and run.started_at.date() == now.date():
                self._logger.info("Calendar run already started today", trigger=trigger.value)
                return None
        return await self.run_pipeline(trigger)

    async def serve(self, stop: asyncio.Event | None = None) -> None:
        """Check the calendar once a day at ``tick_time`` until ``stop`` is set."""

        stop = stop or asyncio.Event()
        jobs = schedule.Scheduler()
        due: List[bool] = []
        jobs.every().day.at(self.schedule_policy.tick_time).do(lambda: due.append(True))
        self._logger.info("Scheduler serving", tick_time=self.schedule_policy.tick_time)
        self.mark_stale_runs()
        await self.tick()
        while not stop.is_set():
            jobs.run_pending()
            while due:
                due.pop()
                self.mark_stale_runs()
                await self.tick()
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.schedule_policy.poll_interval_seconds)
            except asyncio.TimeoutError:
                continue


__all__ = ["PipelineScheduler"]
