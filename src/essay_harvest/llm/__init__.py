"""Public API surface for the harvester LLM package."""

from .client import LLMClient, LLMRunner, PROMPTS_ROOT, as_async_runner, build_llm_client, build_runner
from .models import (
    LLMError,
    LLMOptions,
    LLMRequest,
    LLMResponse,
    PromptMetadata,
    ProviderError,
    ProviderResponse,
    QuarantineError,
    TokenUsage,
    ValidationError,
)
from .observability import MetricsCollector
from .providers import ProviderManager, ProviderProfile
from .registry import PromptRegistry
from .validation import JSONValidator

__all__ = [
    "JSONValidator",
    "LLMClient",
    "LLMError",
    "LLMOptions",
    "LLMRequest",
    "LLMResponse",
    "LLMRunner",
    "MetricsCollector",
    "PROMPTS_ROOT",
    "PromptMetadata",
    "PromptRegistry",
    "ProviderError",
    "ProviderManager",
    "ProviderProfile",
    "ProviderResponse",
    "QuarantineError",
    "TokenUsage",
    "ValidationError",
    "as_async_runner",
    "build_llm_client",
    "build_runner",
]
