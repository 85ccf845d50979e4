"""Provider profiles backed by DSPy language-model clients."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..utils.logging import get_logger
from .models import LLMOptions, ProviderError, ProviderResponse, TokenUsage

ProviderCallable = Callable[[str, Dict[str, Any]], ProviderResponse]

_LOGGER = get_logger(module=__name__)


@dataclass
class ProviderProfile:
    name: str
    model: str
    provider: str
    call: ProviderCallable


class ProviderManager:
    """Route prompts to a named profile and apply option defaults."""

    def __init__(self, *, default_profile: str, profiles: Dict[str, ProviderProfile]) -> None:
        if default_profile not in profiles:
            raise ValueError(f"Unknown default profile '{default_profile}'")
        self._profiles = dict(profiles)
        self._active_profile = default_profile

    def profile(self, name: Optional[str] = None) -> ProviderProfile:
        key = name or self._active_profile
        try:
            return self._profiles[key]
        except KeyError as exc:
            raise ValueError(f"Provider profile '{key}' is not registered") from exc

    def execute(self, prompt: str, options: LLMOptions) -> ProviderResponse:
        profile = self.profile(options.provider_hint)
        payload = self._build_payload(options)
        started = time.perf_counter()
        try:
            response = profile.call(prompt, payload)
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(str(exc), retryable=True) from exc
        return response.model_copy(
            update={
                "latency_ms": (time.perf_counter() - started) * 1000.0,
                "provider": profile.provider,
                "model": profile.model,
            }
        )

    @staticmethod
    def _build_payload(options: LLMOptions) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if options.temperature is not None:
            payload["temperature"] = options.temperature
        if options.max_output_tokens is not None:
            payload["max_tokens"] = options.max_output_tokens
        if options.timeout_seconds is not None:
            payload["timeout"] = options.timeout_seconds
        if options.json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload


class DSPyProviderAdapter:
    """Callable adapter that sends a rendered prompt through ``dspy.LM``."""

    SUPPORTED_PROVIDERS = {"openai", "azure"}

    def __init__(self, *, provider: str, model: str, api_key: str | None = None) -> None:
        self._provider = provider.lower()
        self._model = model
        if self._provider not in self.SUPPORTED_PROVIDERS:
            raise ProviderError(f"Unsupported DSPy provider '{provider}'", retryable=False)
        self._client = self._build_client(api_key)

    def __call__(self, prompt: str, payload: Dict[str, Any]) -> ProviderResponse:
        try:
            raw_response = self._client(prompt=prompt, **payload)
        except Exception as exc:
            raise ProviderError(str(exc), retryable=True) from exc
        return ProviderResponse(content=self._extract_text(raw_response), usage=self._extract_usage(raw_response))

    def _build_client(self, api_key: str | None):
        import dspy

        _LOGGER.debug("Initializing DSPy LM backend", provider=self._provider, model=self._model)
        kwargs: Dict[str, Any] = {"cache": False}
        if api_key:
            kwargs["api_key"] = api_key
        return dspy.LM(f"{self._provider}/{self._model}", **kwargs)

    @staticmethod
    def _extract_text(raw_response: Any) -> str:
        if raw_response is None:
            raise ProviderError("DSPy backend returned no response", retryable=True)
        if isinstance(raw_response, bytes):
            return raw_response.decode("utf-8", errors="ignore")
        if isinstance(raw_response, str):
            return raw_response
        if isinstance(raw_response, (list, tuple)):
            items = [item for item in raw_response if item is not None]
            if not items:
                raise ProviderError("DSPy backend returned empty response", retryable=True)
            return DSPyProviderAdapter._extract_text(items[0])
        if isinstance(raw_response, dict):
            for key in ("text", "content", "completion"):
                if key in raw_response:
                    return DSPyProviderAdapter._extract_text(raw_response[key])
            return json.dumps(raw_response)
        if hasattr(raw_response, "text"):
            return DSPyProviderAdapter._extract_text(getattr(raw_response, "text"))
        return str(raw_response)

    @staticmethod
    def _extract_usage(raw_response: Any) -> TokenUsage:
        usage_data = None
        if hasattr(raw_response, "usage"):
            usage_data = getattr(raw_response, "usage")
        elif isinstance(raw_response, dict):
            usage_data = raw_response.get("usage")
        if isinstance(usage_data, dict):
            return TokenUsage(
                prompt_tokens=int(usage_data.get("prompt_tokens", 0)),
                completion_tokens=int(usage_data.get("completion_tokens", 0)),
            )
        return TokenUsage()


def build_provider_manager(settings, api_key: str | None = None) -> ProviderManager:
    """Construct a :class:`ProviderManager` from ``LLMSettings`` profiles."""

    profiles: Dict[str, ProviderProfile] = {}
    for name, profile_settings in settings.profiles.items():
        adapter = DSPyProviderAdapter(
            provider=profile_settings.provider,
            model=profile_settings.model,
            api_key=api_key,
        )
        profiles[name] = ProviderProfile(
            name=name,
            model=profile_settings.model,
            provider=profile_settings.provider,
            call=adapter,
        )
    return ProviderManager(default_profile=settings.default_profile, profiles=profiles)


__all__ = ["DSPyProviderAdapter", "ProviderManager", "ProviderProfile", "build_provider_manager"]
