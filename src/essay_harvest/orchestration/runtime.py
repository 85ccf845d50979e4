"""Assemble the harvester's components from settings."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..config import Settings, get_settings
from ..llm import LLMRunner, build_runner
from ..pipeline import AcquisitionService, ExtractionValidator
from ..storage import PromptStore, build_store
from ..strategies import (
    AggregatorStrategy,
    CommonAppStrategy,
    ConfiguredSourceStrategy,
    OfficialSiteStrategy,
    ScrapeStrategy,
)
from ..web_mining import SafeFetcher
from .admin import AdminService
from .scheduler import PipelineScheduler

_NO_RUNNER: object = object()


@dataclass
class Runtime:
    settings: Settings
    store: PromptStore
    fetcher: SafeFetcher
    runner: Optional[LLMRunner]
    strategies: List[ScrapeStrategy]
    commonapp: CommonAppStrategy
    validator: ExtractionValidator
    acquisition: AcquisitionService
    scheduler: PipelineScheduler
    admin: AdminService


def build_strategies(
    sources: List[str],
    *,
    fetcher: SafeFetcher,
    store: PromptStore,
    settings: Settings,
    runner: Optional[LLMRunner],
) -> List[ScrapeStrategy]:
    """Per-institution strategies in the order listed by ``pipeline.sources``."""

    policy = settings.policies.strategies
    factories: Dict[str, ScrapeStrategy] = {
        "OFFICIAL": OfficialSiteStrategy(fetcher, policy),
        "CONFIGURED": ConfiguredSourceStrategy(fetcher, store, policy, runner),
        "AGGREGATOR": AggregatorStrategy(fetcher, policy),
    }
    return [factories[name] for name in sources]


def build_runtime(
    settings: Settings | None = None,
    *,
    store: PromptStore | None = None,
    fetcher: SafeFetcher | None = None,
    runner: object = _NO_RUNNER,
    sleep=asyncio.sleep,
) -> Runtime:
    """Wire store, fetcher, LLM runner, strategies and services.

    ``runner`` defaults to whatever :func:`build_runner` derives from the
    environment; pass ``None`` explicitly to force the no-LLM fallbacks.
    """

    cfg = settings or get_settings()
    policies = cfg.policies
    store = store or build_store(cfg)
    fetcher = fetcher or SafeFetcher(policies.web.fetch)
    llm_runner: Optional[LLMRunner] = build_runner(cfg) if runner is _NO_RUNNER else runner  # type: ignore[assignment]

    strategies = build_strategies(
        list(policies.pipeline.sources),
        fetcher=fetcher,
        store=store,
        settings=cfg,
        runner=llm_runner,
    )
    commonapp = CommonAppStrategy(fetcher, policies.strategies, llm_runner)
    validator = ExtractionValidator(policies.pipeline, llm_runner)
    acquisition = AcquisitionService(store, strategies, validator, policy=policies.pipeline, sleep=sleep)
    scheduler = PipelineScheduler(
        store,
        acquisition,
        shared_strategy=commonapp,
        shared_institution_name=policies.strategies.shared_institution_name,
        pipeline_policy=policies.pipeline,
        schedule_policy=policies.schedule,
    )
    admin = AdminService(store, scheduler, acquisition, policy=policies.pipeline)
    return Runtime(
        settings=cfg,
        store=store,
        fetcher=fetcher,
        runner=llm_runner,
        strategies=strategies,
        commonapp=commonapp,
        validator=validator,
        acquisition=acquisition,
        scheduler=scheduler,
        admin=admin,
    )


__all__ = ["Runtime", "build_runtime", "build_strategies"]
