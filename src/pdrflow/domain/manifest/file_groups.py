"""Decompose a parsed manifest into granule file groups."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pdrflow.domain.manifest.parser import ManifestNode, ManifestTree

log = getLogger(__name__)

FILE_GROUP = "FILE_GROUP"
FILE_SPEC = "FILE_SPEC"
# Auxiliary entry used by some providers to carry the granule identifier explicitly.
XAR_ENTRY = "XAR_ENTRY"


@dataclass(slots=True, frozen=True)
class FileSpec:
    directory_id: str
    file_id: str
    file_type: str | None = None
    file_size: int | None = None
    checksum_type: str | None = None
    checksum: str | None = None

    @property
    def path(self) -> str:
        return f"{self.directory_id.rstrip('/')}/{self.file_id}"


@dataclass(slots=True, frozen=True)
class FileGroup:
    index: int
    specs: tuple[FileSpec, ...] = field(default_factory=tuple)
    granule_id: str | None = None
    data_type: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.specs

    @property
    def file_names(self) -> list[str]:
        return [spec.file_id for spec in self.specs]


def file_groups(tree: ManifestTree) -> list[FileGroup]:
    """Return the manifest's file groups in document order."""

    body = tree.body()
    groups = [_file_group(index, node) for index, node in enumerate(body.objects(FILE_GROUP))]
    log.debug("Manifest holds %d file groups", len(groups))
    return groups


def _file_group(index: int, node: ManifestNode) -> FileGroup:
    specs = tuple(_file_spec(spec) for spec in node.objects(FILE_SPEC))
    data_type = node.find("DATA_TYPE")
    return FileGroup(
        index=index,
        specs=specs,
        granule_id=_explicit_granule_id(node),
        data_type=data_type.text if data_type else None,
    )


def _file_spec(node: ManifestNode) -> FileSpec:
    size = node.find("FILE_SIZE")
    file_type = node.find("FILE_TYPE")
    checksum_type = node.find("FILE_CKSUM_TYPE")
    checksum = node.find("FILE_CKSUM_VALUE")
    return FileSpec(
        directory_id=node.get("DIRECTORY_ID").text,
        file_id=node.get("FILE_ID").text,
        file_type=file_type.text if file_type else None,
        file_size=size.value if size and isinstance(size.value, int) else None,
        checksum_type=checksum_type.text if checksum_type else None,
        checksum=checksum.text if checksum else None,
    )


def _explicit_granule_id(node: ManifestNode) -> str | None:
    entries = node.objects(XAR_ENTRY)
    if not entries:
        return None
    granule_id = entries[0].find("GRANULE_ID")
    if granule_id is None:
        return None
    return granule_id.text
