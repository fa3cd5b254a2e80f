"""Collection and provider definitions (immutable reference data)."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from pdrflow.domain.model.enums import DiscoveryKind


def _check_pattern(value: str) -> str:
    try:
        re.compile(value)
    except re.error as exc:
        raise ValueError(f"invalid regular expression {value!r}: {exc}") from exc
    return value


class DefinitionModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )


class GranuleDefinition(DefinitionModel):
    granule_id: str
    granule_id_extraction: str
    files: dict[str, str]

    @field_validator("files", mode="before")
    @classmethod
    def _flatten_slot_objects(cls, value: object) -> object:
        # Slots may be written as ``{"data": {"regex": "..."}}`` or ``{"data": "..."}``.
        if not isinstance(value, Mapping):
            return value
        slots: dict[str, object] = {}
        for name, slot in cast(Mapping[str, object], value).items():
            if isinstance(slot, Mapping):
                slots[name] = cast(Mapping[str, object], slot).get("regex")
            else:
                slots[name] = slot
        return slots

    @field_validator("granule_id", "granule_id_extraction")
    @classmethod
    def _validate_pattern(cls, value: str) -> str:
        return _check_pattern(value)

    @field_validator("files")
    @classmethod
    def _validate_slot_patterns(cls, value: dict[str, str]) -> dict[str, str]:
        for pattern in value.values():
            _check_pattern(pattern)
        return value


class CollectionDefinition(DefinitionModel):
    collection_name: str
    granule_definition: GranuleDefinition
    recipe: dict[str, Any] = Field(default_factory=dict)
    provider_name: str | None = None


class ProviderDefinition(DefinitionModel):
    name: str
    host: str
    path: str = ""
    # Insertion order is classification order; never sort this mapping.
    regex: dict[str, str] = Field(default_factory=dict)
    discovery: DiscoveryKind = DiscoveryKind.HTTP
    manifest_pattern: str = r"\.PDR$"
    bulk_dispatch: bool = False
    concurrency: int = Field(default=5, ge=1)

    @field_validator("manifest_pattern")
    @classmethod
    def _validate_manifest_pattern(cls, value: str) -> str:
        return _check_pattern(value)

    @field_validator("regex")
    @classmethod
    def _validate_regex_table(cls, value: dict[str, str]) -> dict[str, str]:
        for pattern in value.values():
            _check_pattern(pattern)
        return value

    @property
    def endpoint(self) -> str:
        return join_url(self.host, self.path)


def join_url(base: str, *parts: str) -> str:
    """Join URL segments with single slashes, keeping the scheme of ``base``."""

    url = base.rstrip("/")
    for part in parts:
        stripped = part.strip("/")
        if stripped:
            url = f"{url}/{stripped}"
    return url
