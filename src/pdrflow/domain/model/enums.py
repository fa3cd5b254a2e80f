"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ManifestStatus(StrEnum):
    DISCOVERED = "discovered"
    QUEUED = "queued"
    PARSED = "parsed"
    COMPLETED = "completed"
    FAILED = "failed"


class GranuleStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class FileRole(StrEnum):
    """Which path field of a granule file slot a discovered file fills."""

    SIP = "sipFile"
    STAGING = "stagingFile"
    ARCHIVED = "archivedFile"


class UnmatchedFilePolicy(StrEnum):
    DROP = "drop"
    FAIL = "fail"


class DiscoveryKind(StrEnum):
    HTTP = "http"
    FTP = "ftp"


class RecordTable(StrEnum):
    MANIFESTS = "manifests"
    GRANULES = "granules"
    PROVIDERS = "providers"


# Position in the forward lifecycle; terminal statuses are handled separately.
MANIFEST_ORDER: dict[ManifestStatus, int] = {
    ManifestStatus.DISCOVERED: 0,
    ManifestStatus.QUEUED: 1,
    ManifestStatus.PARSED: 2,
    ManifestStatus.COMPLETED: 3,
}

GRANULE_ORDER: dict[GranuleStatus, int] = {
    GranuleStatus.PENDING: 0,
    GranuleStatus.PROCESSING: 1,
    GranuleStatus.COMPLETED: 2,
}

MANIFEST_TERMINAL = frozenset({ManifestStatus.COMPLETED, ManifestStatus.FAILED})
GRANULE_TERMINAL = frozenset({GranuleStatus.COMPLETED, GranuleStatus.FAILED})

RECORD_KEY_FIELDS: dict[RecordTable, tuple[str, ...]] = {
    RecordTable.MANIFESTS: ("pdrName",),
    RecordTable.GRANULES: ("granuleId", "collectionName"),
    RecordTable.PROVIDERS: ("name",),
}
