"""Load collection and provider definitions from a TOML or JSON document.

Example (TOML)::

    [[providers]]
    name = "MODAPS"
    host = "https://modaps.example.org"
    path = "/pdrs"

    [providers.regex]
    MOD09GQ = "^MOD09GQ\\."
    MOD09A1 = "^MOD09A1\\."

    [[collections]]
    collectionName = "MOD09GQ"

    [collections.granuleDefinition]
    granuleId = "^MOD09GQ\\.A\\d{7}"
    granuleIdExtraction = "^(MOD09GQ\\.A\\d{7})"

    [collections.granuleDefinition.files]
    data = { regex = "\\.hdf$" }
    meta = "\\.hdf\\.met$"

Table order is kept as written; provider ``regex`` order decides classification.
"""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pdrflow.config.errors import ConfigurationError
from pdrflow.domain.errors import UnknownDefinitionError
from pdrflow.domain.model import CollectionDefinition, ProviderDefinition

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from pathlib import Path

log = getLogger(__name__)


class DefinitionsDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    providers: list[ProviderDefinition] = Field(default_factory=list)
    collections: list[CollectionDefinition] = Field(default_factory=list)


@dataclass(slots=True, frozen=True)
class StaticDefinitionCatalog:
    providers: Mapping[str, ProviderDefinition]
    collections: Mapping[str, CollectionDefinition]

    @classmethod
    def from_document(cls, document: DefinitionsDocument) -> StaticDefinitionCatalog:
        providers = _index(document.providers, lambda provider: provider.name, "provider")
        collections = _index(
            document.collections, lambda collection: collection.collection_name, "collection"
        )
        return cls(providers=providers, collections=collections)

    def get_collection(self, name: str) -> CollectionDefinition:
        try:
            return self.collections[name]
        except KeyError:
            raise UnknownDefinitionError("collection", name) from None

    def get_provider(self, name: str) -> ProviderDefinition:
        try:
            return self.providers[name]
        except KeyError:
            raise UnknownDefinitionError("provider", name) from None


def _index[TDefinition](
    definitions: list[TDefinition], name_of: Callable[[TDefinition], str], kind: str
) -> dict[str, TDefinition]:
    indexed: dict[str, TDefinition] = {}
    for definition in definitions:
        name = name_of(definition)
        if name in indexed:
            raise ConfigurationError(f"Duplicate {kind} definition: {name}")
        indexed[name] = definition
    return indexed


def parse_definitions(text: str, *, fmt: str) -> StaticDefinitionCatalog:
    try:
        raw = tomllib.loads(text) if fmt == "toml" else json.loads(text)
    except (tomllib.TOMLDecodeError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Definitions are not valid {fmt.upper()}: {exc}") from exc
    try:
        document = DefinitionsDocument.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid definitions: {exc}") from exc
    return StaticDefinitionCatalog.from_document(document)


def load_definitions(path: Path) -> StaticDefinitionCatalog:
    suffix = path.suffix.lower()
    if suffix not in {".toml", ".json"}:
        raise ConfigurationError(f"Definitions file must be .toml or .json, got {path.name}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read definitions from {path}: {exc}") from exc
    catalog = parse_definitions(text, fmt=suffix.removeprefix("."))
    log.info(
        "Loaded %d provider(s) and %d collection(s) from %s",
        len(catalog.providers),
        len(catalog.collections),
        path,
    )
    return catalog
