"""Outbound fetch policy models."""

from __future__ import annotations

import ipaddress
from typing import List

from pydantic import BaseModel, Field, field_validator

_DEFAULT_BLOCKED_NETWORKS = [
    "0.0.0.0/8",
    "10.0.0.0/8",
    "127.0.0.0/8",
    "169.254.0.0/16",
    "172.16.0.0/12",
    "192.168.0.0/16",
    "::1/128",
    "fc00::/7",
    "fe80::/10",
]


class FetchPolicy(BaseModel):
    """Browser identity, timeouts and SSRF guard rails for the safe fetcher."""

    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
        ),
        min_length=3,
    )
    accept: str = Field(
        default="text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    )
    accept_language: str = Field(default="en-US,en;q=0.9")
    request_timeout_seconds: float = Field(default=30.0, ge=1.0)
    max_redirects: int = Field(default=5, ge=0)
    blocked_hostnames: List[str] = Field(
        default_factory=lambda: ["localhost", "localhost.localdomain"]
    )
    blocked_networks: List[str] = Field(default_factory=lambda: list(_DEFAULT_BLOCKED_NETWORKS))

    @field_validator("blocked_hostnames", mode="before")
    def _normalize_hostnames(value: List[str]) -> List[str]:
        return [host.strip().lower().rstrip(".") for host in value if host and host.strip()]

    @field_validator("blocked_networks")
    def _validate_networks(value: List[str]) -> List[str]:
        for network in value:
            ipaddress.ip_network(network, strict=False)
        return value


class WebPolicy(BaseModel):
    """Container for web access settings."""

    fetch: FetchPolicy = Field(default_factory=FetchPolicy)
