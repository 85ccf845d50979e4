"""Durable store interface and implementations."""

from __future__ import annotations

from .base import DuplicatePromptError, PromptStore, StoreError
from .json_store import JsonPromptStore
from .memory import InMemoryPromptStore


def build_store(settings) -> PromptStore:
    """Instantiate the backend selected by ``policies.storage.backend``."""

    if settings.policies.storage.backend == "memory":
        return InMemoryPromptStore()
    return JsonPromptStore(settings.store_path)


__all__ = [
    "DuplicatePromptError",
    "InMemoryPromptStore",
    "JsonPromptStore",
    "PromptStore",
    "StoreError",
    "build_store",
]
