"""Root exception for the harvester."""

from __future__ import annotations


class HarvestError(Exception):
    """Base class for errors raised by harvester components."""

    def __init__(self, message: str, *, retryable: bool = False, reason: str = "error") -> None:
        super().__init__(message)
        self.retryable = retryable
        self.reason = reason


__all__ = ["HarvestError"]
