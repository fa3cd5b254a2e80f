from __future__ import annotations

import asyncio

import httpx
import pytest

from pdrflow.adapters.http_listing import (
    FtpListingSource,
    HttpListingSource,
    build_discovery_source,
    parse_listing,
)
from pdrflow.domain.errors import (
    DiscoveryError,
    DiscoveryTimeoutError,
    ProviderNotFoundError,
    UnimplementedDiscoverySource,
)
from pdrflow.domain.model import DiscoveryKind
from pdrflow.domain.ports import ListingEntry
from tests.support.http import NO_RETRY, make_client_factory
from tests.support.manifests import make_provider

ENDPOINT = "https://provider.example.org/pdrs"

INDEX_PAGE = """
<html><body>
<h1>Index of /pdrs</h1>
<a href="?C=N;O=D">Name</a>
<a href="/">Parent Directory</a>
<a href="archive/">archive/</a>
<a href="MOD09GQ.A2017001.PDR">MOD09GQ.A2017001.PDR</a>
<a class="file" href='/pdrs/MOD09GQ.A2017002.PDR'>MOD09GQ.A2017002.PDR</a>
<a href="MOD09GQ.A2017001.PDR">duplicate</a>
<a href="notes%20and%20more.txt">notes and more.txt</a>
<a href="mailto:ops@example.org">ops</a>
</body></html>
"""


def test_parse_listing_keeps_files_in_page_order() -> None:
    entries = parse_listing(INDEX_PAGE, ENDPOINT)

    assert entries == [
        ListingEntry(name="MOD09GQ.A2017001.PDR", url=f"{ENDPOINT}/MOD09GQ.A2017001.PDR"),
        ListingEntry(name="MOD09GQ.A2017002.PDR", url=f"{ENDPOINT}/MOD09GQ.A2017002.PDR"),
        ListingEntry(name="notes and more.txt", url=f"{ENDPOINT}/notes%20and%20more.txt"),
    ]


def test_http_source_lists_endpoint() -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(200, text=INDEX_PAGE)

    source = HttpListingSource(resilience=NO_RETRY, client_factory=make_client_factory(handler))

    entries = asyncio.run(source.list(ENDPOINT))

    assert requested == [ENDPOINT]
    assert [entry.name for entry in entries][:2] == [
        "MOD09GQ.A2017001.PDR",
        "MOD09GQ.A2017002.PDR",
    ]


def test_http_source_maps_404_to_provider_not_found() -> None:
    source = HttpListingSource(
        resilience=NO_RETRY,
        client_factory=make_client_factory(lambda request: httpx.Response(404)),
    )

    with pytest.raises(ProviderNotFoundError) as excinfo:
        asyncio.run(source.list(ENDPOINT))

    assert excinfo.value.endpoint == ENDPOINT


def test_http_source_maps_server_errors() -> None:
    source = HttpListingSource(
        resilience=NO_RETRY,
        client_factory=make_client_factory(lambda request: httpx.Response(403)),
    )

    with pytest.raises(DiscoveryError, match="HTTP 403"):
        asyncio.run(source.list(ENDPOINT))


def test_http_source_maps_timeouts() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    source = HttpListingSource(resilience=NO_RETRY, client_factory=make_client_factory(handler))

    with pytest.raises(DiscoveryTimeoutError):
        asyncio.run(source.list(ENDPOINT))


def test_ftp_discovery_is_not_implemented() -> None:
    provider = make_provider().model_copy(update={"discovery": DiscoveryKind.FTP})
    source = build_discovery_source(provider)

    assert isinstance(source, FtpListingSource)
    with pytest.raises(UnimplementedDiscoverySource):
        asyncio.run(source.list(ENDPOINT))


def test_http_provider_gets_http_source() -> None:
    assert isinstance(build_discovery_source(make_provider()), HttpListingSource)
