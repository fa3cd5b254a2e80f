"""Queue payloads exchanged between discovery, dispatch and the consumers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from pdrflow.domain.model import GranuleRecord


class QueuePayload(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_body(cls, body: str) -> Self:
        return cls.model_validate_json(body)


class FileTransferMessage(QueuePayload):
    """One physical file to stage for a granule."""

    granule_id: str
    collection_name: str
    pdr_name: str
    file_name: str
    url: str
    bucket: str
    key: str


class GranuleMessage(QueuePayload):
    """Whole-granule work item for providers that process granules in bulk."""

    granule_id: str
    collection_name: str
    pdr_name: str
    recipe: dict[str, Any] = Field(default_factory=dict)
    files: list[str] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: GranuleRecord) -> Self:
        return cls(
            granule_id=record.granule_id,
            collection_name=record.collection_name,
            pdr_name=record.pdr_name,
            recipe=dict(record.recipe),
            files=[slot.name for slot in record.named_slots().values() if slot.name],
        )


class ManifestMessage(QueuePayload):
    """A staged manifest waiting to be parsed."""

    pdr_name: str
    provider_name: str
    original_url: str
    bucket: str
    key: str
    collection_name: str | None = None
