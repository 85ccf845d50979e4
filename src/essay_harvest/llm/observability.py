"""Counters and latency tracking for LLM calls."""

from __future__ import annotations

import statistics
import threading
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Deque, Dict


@dataclass
class MetricsSnapshot:
    counters: Dict[str, int]
    per_prompt: Dict[str, int] = field(default_factory=dict)
    latency_p50_ms: float = 0.0
    latency_max_ms: float = 0.0
    tokens_in: int = 0
    tokens_out: int = 0


class MetricsCollector:
    """Thread-safe collector; the client calls it from worker threads."""

    def __init__(self, window_size: int = 200) -> None:
        self._lock = threading.Lock()
        self._counters: Counter[str] = Counter()
        self._per_prompt: Counter[str] = Counter()
        self._latencies: Deque[float] = deque(maxlen=window_size)
        self._tokens_in = 0
        self._tokens_out = 0

    def incr(self, name: str, value: int = 1, *, prompt_key: str | None = None) -> None:
        with self._lock:
            self._counters[name] += value
            if prompt_key is not None:
                self._per_prompt[f"{prompt_key}:{name}"] += value

    def record_call(self, latency_ms: float, prompt_tokens: int, completion_tokens: int) -> None:
        with self._lock:
            self._latencies.append(float(latency_ms))
            self._tokens_in += int(prompt_tokens)
            self._tokens_out += int(completion_tokens)

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            latencies = list(self._latencies)
            return MetricsSnapshot(
                counters=dict(self._counters),
                per_prompt=dict(self._per_prompt),
                latency_p50_ms=statistics.median(latencies) if latencies else 0.0,
                latency_max_ms=max(latencies) if latencies else 0.0,
                tokens_in=self._tokens_in,
                tokens_out=self._tokens_out,
            )


__all__ = ["MetricsCollector", "MetricsSnapshot"]
