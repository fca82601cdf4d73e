"""Guarded HTTP fetcher for knowledge ingestion."""

from __future__ import annotations

import ipaddress
import socket
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TypeAlias
from urllib.parse import urlparse

import httpx
from loguru import logger

USER_AGENT = "Mozilla/5.0 (compatible; teller-ingest/1.0)"
MAX_REDIRECTS = 5
_REDIRECT_CODES = {301, 302, 303, 307, 308}
_LOCAL_HOSTS = {"localhost", "localhost.localdomain"}

UrlGuard: TypeAlias = Callable[[str], tuple[bool, str]]


class FetchError(Exception):
    """Raised when a URL is refused or the response violates ingestion limits."""


@dataclass(frozen=True, slots=True)
class FetchedPage:
    url: str
    text: str
    content_type: str
    status: int


def _is_private_ip(host: str) -> bool:
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return False
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    )


def _host_resolves_private(hostname: str) -> bool:
    try:
        infos = socket.getaddrinfo(hostname, None)
    except (socket.gaierror, OSError):
        return False
    for info in infos:
        sockaddr = info[4]
        if sockaddr and _is_private_ip(str(sockaddr[0])):
            return True
    return False


def validate_url(url: str) -> tuple[bool, str]:
    """Validate URL and block SSRF to local/private targets."""
    p = urlparse(url)
    if p.scheme not in ("http", "https"):
        return False, f"Only http/https allowed, got '{p.scheme or 'none'}'"
    if not p.netloc:
        return False, "Missing domain"

    host = (p.hostname or "").strip().lower()
    if not host:
        return False, "Missing hostname"
    if host in _LOCAL_HOSTS or host.endswith(".local"):
        return False, f"Blocked local host target: {host}"
    if _is_private_ip(host):
        return False, f"Blocked private IP target: {host}"
    if _host_resolves_private(host):
        return False, f"Blocked private-network DNS target: {host}"
    return True, ""


class DocumentFetcher:
    """Time-boxed, size-capped GET with a content-type allowlist."""

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        max_bytes: int = 1_572_864,
        allowed_content_types: Sequence[str] = ("text/html", "application/json", "application/xml", "text/plain"),
        transport: httpx.AsyncBaseTransport | None = None,
        url_guard: UrlGuard = validate_url,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.max_bytes = max_bytes
        self.allowed_content_types = tuple(t.lower() for t in allowed_content_types)
        self._transport = transport
        self._url_guard = url_guard

    async def fetch(self, url: str) -> FetchedPage:
        """GET *url*, re-checking the guard on every redirect hop."""
        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self.timeout_seconds,
            follow_redirects=False,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            next_url = url
            redirects = 0
            try:
                while True:
                    ok, reason = self._url_guard(next_url)
                    if not ok:
                        raise FetchError(reason)

                    async with client.stream("GET", next_url) as response:
                        if response.status_code in _REDIRECT_CODES:
                            location = response.headers.get("location", "")
                            if not location:
                                raise FetchError(f"Redirect from {next_url} has no location")
                            redirects += 1
                            if redirects > MAX_REDIRECTS:
                                raise FetchError(f"Too many redirects fetching {url}")
                            next_url = str(response.url.join(location))
                            logger.debug("redirect {} -> {}", response.url, next_url)
                            continue
                        return await self._read(response, next_url)
            except httpx.TimeoutException as e:
                raise FetchError(f"Timed out fetching {next_url}") from e
            except httpx.HTTPError as e:
                raise FetchError(f"Network error fetching {next_url}: {e}") from e

    async def _read(self, response: httpx.Response, url: str) -> FetchedPage:
        if response.status_code < 200 or response.status_code >= 300:
            raise FetchError(f"HTTP {response.status_code} from {url}")

        content_type = response.headers.get("content-type", "").lower()
        if not any(allowed in content_type for allowed in self.allowed_content_types):
            raise FetchError(f"Unsupported content type: {content_type or 'none'}")

        declared = response.headers.get("content-length", "").strip()
        if declared.isdigit() and int(declared) > self.max_bytes:
            raise FetchError(f"Content too large ({declared} bytes, max {self.max_bytes})")

        body = bytearray()
        async for chunk in response.aiter_bytes():
            body.extend(chunk)
            if len(body) > self.max_bytes:
                raise FetchError(f"Content too large (max {self.max_bytes} bytes)")

        encoding = response.encoding or "utf-8"
        text = bytes(body).decode(encoding, errors="replace")
        logger.debug("fetched {} ({} bytes, {})", url, len(body), content_type)
        return FetchedPage(url=str(response.url), text=text, content_type=content_type, status=response.status_code)
