"""SSRF-guarded HTTP fetcher shared by every source strategy."""

from __future__ import annotations

import asyncio
import ipaddress
import socket
from typing import Awaitable, Callable, List
from urllib.parse import urljoin, urlparse

import requests
from requests import Response
from requests.exceptions import RequestException

from ..config.policies import FetchPolicy
from ..errors import HarvestError
from ..utils.logging import get_logger

Resolver = Callable[[str], Awaitable[List[str]]]
IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address

_REDIRECT_STATUSES = {301, 302, 303, 307, 308}


class FetchError(HarvestError):
    """Exception raised when a network fetch fails."""

    def __init__(self, message: str, *, url: str, retryable: bool = False, reason: str = "fetch") -> None:
        super().__init__(message, retryable=retryable, reason=reason)
        self.url = url


class SsrfBlocked(FetchError):
    """Target scheme, hostname or resolved address is not publicly routable."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Blocked request to {url}: {reason}", url=url, retryable=False, reason=reason)


class UpstreamError(FetchError):
    """DNS failure, transport failure or a non-2xx response."""

    def __init__(self, message: str, *, url: str, status_code: int | None = None, reason: str = "upstream") -> None:
        super().__init__(message, url=url, retryable=status_code is None or status_code >= 500, reason=reason)
        self.status_code = status_code


async def resolve_host(hostname: str) -> List[str]:
    """Resolve ``hostname`` on the running loop without blocking it."""

    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    addresses = {info[4][0].split("%", 1)[0] for info in infos if info[4]}
    return sorted(addresses)


class SafeFetcher:
    """Resolve, vet and fetch a URL with a browser identity.

    Every hop (including redirect targets) is validated against the blocked
    network list before any HTTP I/O is issued for it. A URL that answers
    directly costs exactly one GET; there are no retries.

    The address check and the GET resolve DNS separately: ``requests``
    looks the hostname up again when it connects, so a host that rebinds
    between the two lookups can still reach a private address. Deployments
    that scrape untrusted admin-supplied URLs should also restrict egress at
    the network layer.
    """

    def __init__(
        self,
        policy: FetchPolicy | None = None,
        *,
        session: requests.Session | None = None,
        resolver: Resolver | None = None,
    ) -> None:
        self.policy = policy or FetchPolicy()
        self._session = session or requests.Session()
        self._resolver = resolver or resolve_host
        self._networks = [ipaddress.ip_network(item, strict=False) for item in self.policy.blocked_networks]
        self._logger = get_logger(component="safe_fetcher")

    @property
    def headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.policy.user_agent,
            "Accept": self.policy.accept,
            "Accept-Language": self.policy.accept_language,
        }

    async def fetch(self, url: str) -> str:
        """Return the body text of ``url`` or raise :class:`FetchError`."""

        current = url
        for _ in range(self.policy.max_redirects + 1):
            await self.guard(current)
            response = await asyncio.to_thread(self._issue_request, current)
            try:
                status = response.status_code
                location = response.headers.get("Location") if status in _REDIRECT_STATUSES else None
                if location:
                    next_url = urljoin(current, location)
                    self._logger.debug("Following redirect", url=current, location=next_url)
                    current = next_url
                    continue
                if not 200 <= status < 300:
                    raise UpstreamError(
                        f"HTTP {status} for {current}",
                        url=current,
                        status_code=status,
                        reason="http_status",
                    )
                return response.text
            finally:
                response.close()
        raise UpstreamError(
            f"Exceeded {self.policy.max_redirects} redirects for {url}",
            url=url,
            reason="too_many_redirects",
        )

    async def guard(self, url: str) -> None:
        """Raise :class:`SsrfBlocked` unless ``url`` targets public address space."""

        try:
            parsed = urlparse(url)
            hostname = (parsed.hostname or "").rstrip(".").lower()
        except ValueError as exc:
            raise SsrfBlocked(url, "malformed_url") from exc
        scheme = (parsed.scheme or "").lower()
        if scheme not in {"http", "https"}:
            raise SsrfBlocked(url, f"unsupported_scheme:{scheme or 'missing'}")
        if not hostname:
            raise SsrfBlocked(url, "missing_hostname")
        if hostname in self.policy.blocked_hostnames or hostname.endswith(".localhost"):
            raise SsrfBlocked(url, f"blocked_hostname:{hostname}")

        literal = _parse_ip(hostname)
        if literal is not None:
            self._check_address(url, literal)
            return

        try:
            resolved = await self._resolver(hostname)
        except (OSError, UnicodeError) as exc:
            raise UpstreamError(
                f"DNS resolution failed for {hostname}: {exc}",
                url=url,
                reason="dns_failure",
            ) from exc
        if not resolved:
            raise UpstreamError(f"DNS returned no addresses for {hostname}", url=url, reason="dns_failure")
        for raw in resolved:
            address = _parse_ip(raw)
            if address is None:
                raise UpstreamError(f"Unparseable address {raw!r} for {hostname}", url=url, reason="dns_failure")
            self._check_address(url, address)

    def is_blocked(self, address: IPAddress) -> bool:
        if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
            address = address.ipv4_mapped
        return any(address.version == network.version and address in network for network in self._networks)

    def _check_address(self, url: str, address: IPAddress) -> None:
        if self.is_blocked(address):
            self._logger.warning("Blocked private address", url=url, address=str(address))
            raise SsrfBlocked(url, f"blocked_ip:{address}")

    def _issue_request(self, url: str) -> Response:
        try:
            return self._session.get(
                url,
                headers=self.headers,
                timeout=self.policy.request_timeout_seconds,
                allow_redirects=False,
            )
        except RequestException as exc:
            raise UpstreamError(f"Request failed for {url}: {exc}", url=url, reason="transport") from exc


def _parse_ip(value: str) -> IPAddress | None:
    try:
        return ipaddress.ip_address(value)
    except ValueError:
        return None


__all__ = ["FetchError", "SafeFetcher", "SsrfBlocked", "UpstreamError", "resolve_host"]
