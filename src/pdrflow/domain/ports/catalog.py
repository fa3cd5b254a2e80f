"""Port for collection and provider definitions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pdrflow.domain.model import CollectionDefinition, ProviderDefinition


@runtime_checkable
class DefinitionCatalog(Protocol):
    """Read-only lookup of definitions; unknown names raise ``UnknownDefinitionError``."""

    def get_collection(self, name: str) -> CollectionDefinition: ...

    def get_provider(self, name: str) -> ProviderDefinition: ...


__all__ = ["DefinitionCatalog"]
