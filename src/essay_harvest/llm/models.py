"""Typed models for the extraction and validation LLM calls."""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from ..errors import HarvestError


class TokenUsage(BaseModel):
    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)


class PromptMetadata(BaseModel):
    """Active variant of a registered prompt."""

    prompt_key: str
    version: str
    description: str = ""
    template_path: str
    schema_path: str

    @field_validator("template_path", "schema_path")
    @classmethod
    def _ensure_relative(cls, value: str) -> str:
        if value.startswith("/"):
            raise ValueError("Prompt asset paths must be relative to the prompts directory")
        return value


class LLMOptions(BaseModel):
    """Per-call overrides of the policy defaults."""

    temperature: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    max_output_tokens: Optional[int] = Field(default=None, ge=128)
    timeout_seconds: Optional[float] = Field(default=None, ge=0.1)
    retry_attempts: Optional[int] = Field(default=None, ge=0)
    json_mode: Optional[bool] = None
    provider_hint: Optional[str] = None


class LLMRequest(BaseModel):
    prompt_key: str
    variables: Dict[str, Any] = Field(default_factory=dict)
    options: LLMOptions = Field(default_factory=LLMOptions)

    @field_validator("prompt_key")
    @classmethod
    def _strip_prompt_key(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("prompt_key must not be empty")
        return value.strip()


class ValidationResult(BaseModel):
    ok: bool
    parsed: Optional[Any] = None
    error: Optional[str] = None
    repaired: bool = False


class ProviderResponse(BaseModel):
    content: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    latency_ms: float = Field(default=0.0, ge=0.0)
    provider: str = "unknown"
    model: str = "unknown"


class LLMResponse(BaseModel):
    """Parsed, schema-checked response handed back to pipeline code."""

    ok: bool
    content: Any = None
    raw: Optional[str] = None
    tokens: TokenUsage = Field(default_factory=TokenUsage)
    latency_ms: float = Field(default=0.0, ge=0.0)
    meta: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def success(
        cls,
        content: Any,
        raw: str,
        tokens: TokenUsage,
        metadata: Dict[str, Any],
        latency_ms: float,
    ) -> "LLMResponse":
        return cls(ok=True, content=content, raw=raw, tokens=tokens, latency_ms=latency_ms, meta=metadata)

    @classmethod
    def failure(cls, error: str, metadata: Dict[str, Any], raw: Optional[str] = None) -> "LLMResponse":
        return cls(ok=False, raw=raw, meta=metadata, error=error)


class LLMError(HarvestError):
    """Base exception for LLM client failures."""

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message, retryable=retryable, reason="llm")
        self.timestamp_ms = int(time.time() * 1000)


class ProviderError(LLMError):
    """Raised when the underlying provider fails."""


class ValidationError(LLMError):
    """Raised when the response never satisfies its schema."""


class QuarantineError(LLMError):
    """Raised when a prompt keeps failing and further attempts are abandoned."""


__all__ = [
    "LLMError",
    "LLMOptions",
    "LLMRequest",
    "LLMResponse",
    "PromptMetadata",
    "ProviderError",
    "ProviderResponse",
    "QuarantineError",
    "TokenUsage",
    "ValidationError",
    "ValidationResult",
]
