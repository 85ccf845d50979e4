"""High level LLM client and the async runner handed to pipeline components."""

from __future__ import annotations

import asyncio
import os
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..config.policies import LLMSettings
from ..utils.logging import get_logger
from .models import (
    LLMOptions,
    LLMRequest,
    LLMResponse,
    PromptMetadata,
    ProviderError,
    ProviderResponse,
    QuarantineError,
    ValidationError,
)
from .observability import MetricsCollector
from .providers import ProviderManager, build_provider_manager
from .registry import PromptRegistry
from .validation import JSONValidator

PROMPTS_ROOT = Path(__file__).resolve().parents[1] / "prompts"

LLMRunner = Callable[[str, Dict[str, Any]], Awaitable[LLMResponse]]

_LOGGER = get_logger(module=__name__)


class LLMClient:
    """Render a registered prompt, call the provider and validate the JSON.

    Provider failures are retried with exponential backoff while they are
    retryable. A schema failure triggers one constrained retry that restates
    the expected shape; persistent failures raise :class:`ValidationError`
    or :class:`QuarantineError`.
    """

    def __init__(
        self,
        *,
        settings: LLMSettings,
        registry: PromptRegistry,
        provider_manager: ProviderManager,
        validator: JSONValidator,
        templates_root: Path,
        metrics: Optional[MetricsCollector] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._registry = registry
        self._provider_manager = provider_manager
        self._validator = validator
        self._metrics = metrics or MetricsCollector()
        self._sleep = sleep
        if not Path(templates_root).exists():
            raise FileNotFoundError(f"Templates directory missing: {templates_root}")
        self._env = Environment(
            loader=FileSystemLoader(str(templates_root)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    def render(self, prompt_key: str, variables: Mapping[str, Any]) -> str:
        meta = self._registry.load_prompt(prompt_key)
        return self._env.get_template(meta.template_path).render(**variables)

    def run(
        self,
        prompt_key: str,
        variables: Dict[str, Any],
        options: Optional[LLMOptions] = None,
    ) -> LLMResponse:
        request = LLMRequest(prompt_key=prompt_key, variables=variables, options=options or LLMOptions())
        meta = self._registry.load_prompt(request.prompt_key)
        rendered = self._env.get_template(meta.template_path).render(**request.variables)
        merged = self._merge_options(request.options)
        total_attempts = 1 + (merged.retry_attempts or 0)
        quarantine_after = max(1, self._settings.quarantine_after_attempts)
        backoff = max(0.0, self._settings.retry_backoff_seconds)
        prompt = rendered
        constrained = False
        failures = 0
        last_error: Optional[str] = None

        for attempt in range(total_attempts):
            final_attempt = attempt == total_attempts - 1
            try:
                provider_response = self._provider_manager.execute(prompt, merged)
            except ProviderError as exc:
                last_error = str(exc)
                failures += 1
                self._metric("provider_error", meta)
                if not exc.retryable or final_attempt:
                    _LOGGER.warning("LLM provider call failed", prompt_key=meta.prompt_key, error=last_error)
                    return LLMResponse.failure(last_error, self._response_meta(meta, None, repaired=False))
                if failures >= quarantine_after:
                    self._metric("quarantined", meta)
                    raise QuarantineError(last_error)
                backoff = self._back_off(backoff, meta)
                continue

            self._metric("calls_total", meta)
            self._metrics.record_call(
                provider_response.latency_ms,
                provider_response.usage.prompt_tokens,
                provider_response.usage.completion_tokens,
            )
            validation = self._validator.validate(provider_response.content, meta.schema_path)
            if validation.ok:
                self._metric("ok", meta)
                return LLMResponse.success(
                    content=validation.parsed,
                    raw=provider_response.content,
                    tokens=provider_response.usage,
                    metadata=self._response_meta(meta, provider_response, repaired=validation.repaired),
                    latency_ms=provider_response.latency_ms,
                )

            last_error = validation.error or "Unknown validation error"
            failures += 1
            self._metric("invalid_json", meta)
            if final_attempt:
                raise ValidationError(last_error)
            if failures >= quarantine_after and constrained:
                self._metric("quarantined", meta)
                raise QuarantineError(last_error)
            if not constrained:
                hint = self._validator.describe_schema(meta.schema_path)
                prompt = f"{rendered}\n\nOnly return JSON conforming to schema: {hint}."
                merged = merged.model_copy(update={"json_mode": True})
                constrained = True
            backoff = self._back_off(backoff, meta)

        raise QuarantineError(last_error or "LLM response quarantined")

    def _back_off(self, current: float, meta: PromptMetadata) -> float:
        self._metric("retries", meta)
        if current > 0:
            self._sleep(current)
        return current * 2

    def _merge_options(self, options: LLMOptions) -> LLMOptions:
        defaults = {
            "temperature": self._settings.temperature,
            "max_output_tokens": self._settings.token_budget,
            "timeout_seconds": self._settings.request_timeout_seconds,
            "retry_attempts": self._settings.retry_attempts,
            "json_mode": self._settings.json_mode,
        }
        defaults.update(options.model_dump(exclude_none=True))
        return LLMOptions.model_validate(defaults)

    def _metric(self, name: str, meta: PromptMetadata) -> None:
        if self._settings.metrics_enabled:
            self._metrics.incr(name, prompt_key=meta.prompt_key)

    @staticmethod
    def _response_meta(
        meta: PromptMetadata, provider: Optional[ProviderResponse], *, repaired: bool
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "prompt_key": meta.prompt_key,
            "prompt_version": meta.version,
            "repaired": repaired,
        }
        if provider is not None:
            payload.update({"provider": provider.provider, "model": provider.model})
        return payload


def _resolve_asset(root: Path, value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else (root / path)


def build_llm_client(
    settings: LLMSettings,
    *,
    api_key: str | None = None,
    provider_manager: ProviderManager | None = None,
    prompts_root: Path = PROMPTS_ROOT,
) -> LLMClient:
    """Wire registry, templates, schemas and provider profiles together."""

    registry = PromptRegistry(registry_file=_resolve_asset(prompts_root, settings.registry.file))
    validator = JSONValidator(schema_base_path=_resolve_asset(prompts_root, settings.registry.schema_root))
    return LLMClient(
        settings=settings,
        registry=registry,
        provider_manager=provider_manager or build_provider_manager(settings, api_key=api_key),
        validator=validator,
        templates_root=_resolve_asset(prompts_root, settings.registry.templates_root),
    )


def as_async_runner(client: LLMClient) -> LLMRunner:
    """Expose ``client.run`` as a coroutine executed on a worker thread."""

    async def runner(prompt_key: str, variables: Dict[str, Any]) -> LLMResponse:
        return await asyncio.to_thread(client.run, prompt_key, variables)

    return runner


def build_runner(settings, *, environ: Mapping[str, str] | None = None) -> LLMRunner | None:
    """Return an async runner, or ``None`` when no API key is configured.

    ``None`` is the capability signal consumed by the strategies and the
    extraction validator: they fall back to fixed lists or pass-through
    verdicts instead of calling the model.
    """

    llm_settings: LLMSettings = settings.policies.llm
    if not llm_settings.enabled:
        _LOGGER.info("LLM integration disabled by policy")
        return None
    api_key = (environ if environ is not None else os.environ).get(llm_settings.api_key_env_var)
    if not api_key:
        _LOGGER.info("LLM API key not configured; using fallbacks", env_var=llm_settings.api_key_env_var)
        return None
    return as_async_runner(build_llm_client(llm_settings, api_key=api_key))


__all__ = [
    "LLMClient",
    "LLMRunner",
    "PROMPTS_ROOT",
    "as_async_runner",
    "build_llm_client",
    "build_runner",
]
