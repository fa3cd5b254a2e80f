"""Public domain model surface."""

from __future__ import annotations

from pdrflow.domain.model.definitions import (
    CollectionDefinition,
    GranuleDefinition,
    ProviderDefinition,
    join_url,
)
from pdrflow.domain.model.enums import (
    DiscoveryKind,
    FileRole,
    GranuleStatus,
    ManifestStatus,
    RecordTable,
    UnmatchedFilePolicy,
)
from pdrflow.domain.model.records import (
    GranuleFile,
    GranuleRecord,
    ManifestRecord,
    ProviderHealth,
    RecordModel,
    StoredRecord,
    granule_key,
    manifest_key,
    provider_key,
    utcnow,
)

__all__ = [
    "CollectionDefinition",
    "DiscoveryKind",
    "FileRole",
    "GranuleDefinition",
    "GranuleFile",
    "GranuleRecord",
    "GranuleStatus",
    "ManifestRecord",
    "ManifestStatus",
    "ProviderDefinition",
    "ProviderHealth",
    "RecordModel",
    "RecordTable",
    "StoredRecord",
    "UnmatchedFilePolicy",
    "granule_key",
    "join_url",
    "manifest_key",
    "provider_key",
    "utcnow",
]
