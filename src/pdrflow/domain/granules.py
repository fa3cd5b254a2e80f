"""Granule record construction."""

from __future__ import annotations

import re
from dataclasses import dataclass
from logging import getLogger
from pathlib import PurePosixPath
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from pdrflow.domain.errors import InvalidGranuleId, UnmatchedFileError
from pdrflow.domain.model import (
    FileRole,
    GranuleFile,
    GranuleRecord,
    UnmatchedFilePolicy,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pdrflow.domain.manifest import FileGroup
    from pdrflow.domain.model import CollectionDefinition

log = getLogger(__name__)


@dataclass(slots=True, frozen=True)
class DiscoveredFile:
    """A physical file known by URL, together with the role its URL plays."""

    url: str
    role: FileRole = FileRole.SIP

    @property
    def name(self) -> str:
        return base_name(self.url)


def base_name(url: str) -> str:
    return PurePosixPath(urlsplit(url).path).name


def extract_granule_id(file_name: str, extraction: str) -> str:
    match = re.search(extraction, file_name)
    if match is None or match.lastindex is None:
        raise InvalidGranuleId(
            f"Could not extract a granule ID from {file_name} using {extraction}"
        )
    return match.group(1)


def resolve_granule_id(group: FileGroup, collection: CollectionDefinition) -> str:
    """Use the group's explicit identifier, else derive it from the first file name."""

    if group.granule_id:
        return group.granule_id
    if group.is_empty:
        raise InvalidGranuleId(f"File group {group.index} has no files to derive a granule ID")
    extraction = collection.granule_definition.granule_id_extraction
    return extract_granule_id(group.specs[0].file_id, extraction)


def build_granule_record(
    collection: CollectionDefinition,
    granule_id: str,
    files: Sequence[DiscoveredFile],
    *,
    pdr_name: str,
    unmatched: UnmatchedFilePolicy = UnmatchedFilePolicy.DROP,
) -> GranuleRecord:
    """Build a pending granule record, classifying ``files`` into the collection's slots."""

    definition = collection.granule_definition
    if not re.search(definition.granule_id, granule_id):
        raise InvalidGranuleId(
            f"Invalid Granule ID {granule_id}: it does not match the granule ID "
            f"definition {definition.granule_id}",
            granule_id=granule_id,
        )

    matched: set[str] = set()
    slots: dict[str, GranuleFile] = {}
    for slot_name, pattern in definition.files.items():
        slot = GranuleFile(regex=pattern)
        for discovered in files:
            name = discovered.name
            if re.search(pattern, name):
                slot = slot.model_copy(update={"name": name}).with_location(
                    discovered.role, discovered.url
                )
                matched.add(discovered.url)
                break
        slots[slot_name] = slot

    unmatched_names = [f.name for f in files if f.url not in matched]
    if unmatched_names:
        if unmatched is UnmatchedFilePolicy.FAIL:
            raise UnmatchedFileError(unmatched_names, granule_id=granule_id)
        log.info(
            "Granule %s: %d file(s) match no slot and are left out of the record: %s",
            granule_id,
            len(unmatched_names),
            ", ".join(unmatched_names),
        )

    return GranuleRecord(
        granule_id=granule_id,
        collection_name=collection.collection_name,
        pdr_name=pdr_name,
        files=slots,
        recipe=dict(collection.recipe),
    )
