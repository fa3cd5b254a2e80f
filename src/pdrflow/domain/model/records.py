"""Persistent manifest, granule and provider-health records.

Records travel to and from the record store as plain items with camelCase keys;
``to_item``/``from_item`` are the only conversions the rest of the code uses.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pdrflow.domain.model.enums import (
    GRANULE_TERMINAL,
    FileRole,
    GranuleStatus,
    ManifestStatus,
)


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


class RecordModel(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
        validate_assignment=True,
    )

    def to_item(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> Self:
        return cls.model_validate(item)


class StoredRecord(RecordModel):
    """A top-level store item; ``revision`` increases by one on every write."""

    revision: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ManifestRecord(StoredRecord):
    pdr_name: str
    original_url: str
    provider_name: str
    collection_name: str | None = None
    status: ManifestStatus = ManifestStatus.DISCOVERED
    granules: dict[str, bool] = Field(default_factory=dict)
    granule_count: int | None = None
    address: str | None = None
    error: str | None = None
    is_active: bool = True

    @property
    def key(self) -> dict[str, str]:
        return {"pdrName": self.pdr_name}

    def is_complete(self) -> bool:
        """Whether every granule this manifest registered has been processed."""

        if self.status is not ManifestStatus.PARSED or self.granule_count is None:
            return False
        if len(self.granules) < self.granule_count:
            return False
        return all(self.granules.values())


class GranuleFile(RecordModel):
    regex: str
    name: str | None = None
    sip_file: str | None = None
    staging_file: str | None = None
    archived_file: str | None = None

    def location(self, role: FileRole) -> str | None:
        if role is FileRole.SIP:
            return self.sip_file
        if role is FileRole.STAGING:
            return self.staging_file
        return self.archived_file

    def with_location(self, role: FileRole, uri: str) -> GranuleFile:
        field_name = {
            FileRole.SIP: "sip_file",
            FileRole.STAGING: "staging_file",
            FileRole.ARCHIVED: "archived_file",
        }[role]
        return self.model_copy(update={field_name: uri})


class GranuleRecord(StoredRecord):
    granule_id: str
    collection_name: str
    pdr_name: str
    files: dict[str, GranuleFile] = Field(default_factory=dict)
    recipe: dict[str, Any] = Field(default_factory=dict)
    status: GranuleStatus = GranuleStatus.PENDING
    duration: float | None = None

    @property
    def key(self) -> dict[str, str]:
        return granule_key(self.granule_id, self.collection_name)

    @property
    def is_terminal(self) -> bool:
        return self.status in GRANULE_TERMINAL

    def named_slots(self) -> dict[str, GranuleFile]:
        return {slot: file for slot, file in self.files.items() if file.name is not None}

    def all_files_staged(self) -> bool:
        named = self.named_slots()
        return bool(named) and all(file.staging_file for file in named.values())


class ProviderHealth(StoredRecord):
    name: str
    is_active: bool = True
    error: str | None = None


def granule_key(granule_id: str, collection_name: str) -> dict[str, str]:
    return {"granuleId": granule_id, "collectionName": collection_name}


def manifest_key(pdr_name: str) -> dict[str, str]:
    return {"pdrName": pdr_name}


def provider_key(name: str) -> dict[str, str]:
    return {"name": name}
