"""Port for remote manifest listings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(slots=True, frozen=True)
class ListingEntry:
    name: str
    url: str


@runtime_checkable
class DiscoverySource(Protocol):
    """Lists the entries published at a provider endpoint.

    Implementations raise ``ProviderNotFoundError`` when the endpoint answers
    "not found", ``DiscoveryTimeoutError`` on timeouts and ``DiscoveryError`` for
    any other failure.
    """

    async def list(self, endpoint: str) -> list[ListingEntry]: ...


__all__ = ["DiscoverySource", "ListingEntry"]
