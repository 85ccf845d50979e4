"""LLM runtime policy models."""

from __future__ import annotations

from typing import Dict

from pydantic import BaseModel, Field, model_validator


class ProviderProfileSettings(BaseModel):
    """Provider/model pair addressed by a profile name."""

    provider: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)


class RegistrySettings(BaseModel):
    """Locations of the prompt registry, templates and schemas.

    Relative paths resolve against the packaged ``essay_harvest/prompts``
    directory.
    """

    file: str = Field(default="registry.yaml", min_length=1)
    templates_root: str = Field(default="templates", min_length=1)
    schema_root: str = Field(default="schemas", min_length=1)


class LLMSettings(BaseModel):
    """Determinism and retry settings for extraction and validation prompts.

    The client is only built when the environment variable named by
    ``api_key_env_var`` is set; otherwise every caller degrades to its
    fallback behaviour.
    """

    enabled: bool = Field(default=True)
    api_key_env_var: str = Field(default="OPENAI_API_KEY", min_length=1)
    temperature: float = Field(default=0.1, ge=0.0, le=1.0)
    json_mode: bool = Field(default=True)
    retry_attempts: int = Field(default=1, ge=0)
    retry_backoff_seconds: float = Field(default=1.0, ge=0.0)
    quarantine_after_attempts: int = Field(default=3, ge=1)
    token_budget: int = Field(default=2000, ge=128)
    request_timeout_seconds: float = Field(default=60.0, ge=0.1)
    default_profile: str = Field(default="standard", min_length=1)
    profiles: Dict[str, ProviderProfileSettings] = Field(default_factory=dict)
    registry: RegistrySettings = Field(default_factory=RegistrySettings)
    metrics_enabled: bool = Field(default=True)

    @model_validator(mode="after")
    def _ensure_profile(self) -> "LLMSettings":
        if self.default_profile not in self.profiles:
            if self.profiles:
                raise ValueError(
                    f"LLM default_profile '{self.default_profile}' is missing from profiles configuration"
                )
            self.profiles[self.default_profile] = ProviderProfileSettings(
                provider="openai",
                model="gpt-4o-mini",
            )
        return self
