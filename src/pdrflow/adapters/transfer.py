"""Read a staging source (remote URL or local file) into a binary handle."""

from __future__ import annotations

import shutil
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Final
from urllib.parse import unquote, urlsplit

from pdrflow.adapters.http_resilience import ResilientClient, default_client_factory
from pdrflow.config.http_resilience import ResilienceConfig, transfer_resilience

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)

_REMOTE_SCHEMES: Final[frozenset[str]] = frozenset({"http", "https"})


def is_remote(source: str) -> bool:
    return urlsplit(source).scheme in _REMOTE_SCHEMES


def local_path(source: str) -> Path:
    parts = urlsplit(source)
    if parts.scheme == "file":
        return Path(unquote(parts.path))
    return Path(source)


class SourceTransfer:
    """Copies a source into an open binary handle, streaming remote bodies."""

    def __init__(
        self,
        *,
        resilience: ResilienceConfig | None = None,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self.resilience = resilience or transfer_resilience()
        self.client_factory = client_factory or default_client_factory

    async def copy_into(self, source: str, handle: BinaryIO) -> int:
        if not is_remote(source):
            with local_path(source).open("rb") as reader:
                shutil.copyfileobj(reader, handle)
            return handle.tell()

        written = 0
        async with self.client_factory(self.resilience) as client:
            async with client.stream("GET", source) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes():
                    handle.write(chunk)
                    written += len(chunk)
        log.debug("Fetched %d bytes from %s", written, source)
        return written
