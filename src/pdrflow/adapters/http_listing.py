"""Discover manifests by scraping an HTTP directory listing."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final
from urllib.parse import unquote, urljoin, urlsplit

import httpx

from pdrflow.adapters.http_resilience import ResilientClient, default_client_factory
from pdrflow.config.http_resilience import ResilienceConfig, listing_resilience
from pdrflow.domain.errors import (
    DiscoveryError,
    DiscoveryTimeoutError,
    ProviderNotFoundError,
    UnimplementedDiscoverySource,
)
from pdrflow.domain.model import DiscoveryKind
from pdrflow.domain.ports import DiscoverySource, ListingEntry

if TYPE_CHECKING:
    from collections.abc import Callable

    from pdrflow.domain.model import ProviderDefinition

log = getLogger(__name__)

_HREF: Final[re.Pattern[str]] = re.compile(r"""<a\s[^>]*href\s*=\s*["']([^"']+)["']""", re.I)


def parse_listing(html: str, base_url: str) -> list[ListingEntry]:
    """Extract ``{name, url}`` entries from an HTML index page, in page order.

    Parent links, sort links (``?C=N;O=D``) and directories are left out.
    """

    base = base_url if base_url.endswith("/") else f"{base_url}/"
    entries: list[ListingEntry] = []
    seen: set[str] = set()
    for href in _HREF.findall(html):
        if href.startswith(("?", "#", "mailto:")) or href.endswith("/"):
            continue
        url = urljoin(base, href)
        name = unquote(urlsplit(url).path.rsplit("/", 1)[-1])
        if not name or url in seen:
            continue
        seen.add(url)
        entries.append(ListingEntry(name=name, url=url))
    return entries


@dataclass(slots=True)
class HttpListingSource:
    resilience: ResilienceConfig = field(default_factory=listing_resilience)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=default_client_factory
    )

    async def list(self, endpoint: str) -> list[ListingEntry]:
        async with self.client_factory(self.resilience) as client:
            try:
                response = await client.get(endpoint)
            except httpx.TimeoutException as exc:
                raise DiscoveryTimeoutError(
                    f"Timed out listing {endpoint}", endpoint=endpoint
                ) from exc
            except httpx.HTTPError as exc:
                raise DiscoveryError(
                    f"Could not list {endpoint}: {exc}", endpoint=endpoint
                ) from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            raise ProviderNotFoundError(f"{endpoint} was not found", endpoint=endpoint)
        if response.is_error:
            raise DiscoveryError(
                f"Listing {endpoint} returned HTTP {response.status_code}", endpoint=endpoint
            )

        entries = parse_listing(response.text, str(response.url))
        log.debug("Listed %d entries at %s", len(entries), endpoint)
        return entries


@dataclass(slots=True)
class FtpListingSource:
    """Placeholder for providers configured with ``discovery = "ftp"``."""

    async def list(self, endpoint: str) -> list[ListingEntry]:  # noqa: ARG002
        raise UnimplementedDiscoverySource(DiscoveryKind.FTP.value)


def build_discovery_source(
    provider: ProviderDefinition,
    *,
    client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
) -> DiscoverySource:
    if provider.discovery is DiscoveryKind.HTTP:
        if client_factory is None:
            return HttpListingSource()
        return HttpListingSource(client_factory=client_factory)
    return FtpListingSource()
