"""Ingest pipeline configuration.

Every component receives an ``IngestConfig`` (or the parts of it it needs) at
construction time; nothing reads queue or table identifiers from the process
environment after start-up.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, Literal

from pdrflow.domain.model.enums import UnmatchedFilePolicy

from .env import env_int, env_str, require_env_var
from .errors import InvalidSettingError
from .storage import StorageConfig, get_storage_config

DEFAULT_CONCURRENCY: Final[int] = 5
DEFAULT_VISIBILITY_TIMEOUT: Final[int] = 200
DEFAULT_MANIFEST_BATCH_SIZE: Final[int] = 60
DEFAULT_BUCKET: Final[str] = "internal"
MANIFEST_KEY_PREFIX: Final[str] = "pdrs"
STAGING_KEY_PREFIX: Final[str] = "staging"

Backend = Literal["local", "aws"]


@dataclass(frozen=True, slots=True)
class QueueNames:
    manifests: str = "manifests"
    granules: str = "granules"
    processing: str = "processing"


DEFAULT_QUEUES: Final[QueueNames] = QueueNames()


@dataclass(frozen=True, slots=True)
class StagingTarget:
    """Where manifests and granule files are staged inside the object store."""

    bucket: str = DEFAULT_BUCKET
    manifest_prefix: str = MANIFEST_KEY_PREFIX
    file_prefix: str = STAGING_KEY_PREFIX

    def manifest_key(self, name: str) -> str:
        return f"{self.manifest_prefix}/{name}"

    def file_key(self, collection_name: str, granule_id: str, name: str) -> str:
        return f"{self.file_prefix}/{collection_name}/{granule_id}/{name}"


@dataclass(frozen=True, slots=True)
class IngestConfig:
    definitions_path: Path
    database_uri: str
    backend: Backend = "local"
    staging_root: Path | None = None
    queues: QueueNames = field(default_factory=QueueNames)
    staging: StagingTarget = field(default_factory=StagingTarget)
    concurrency: int = DEFAULT_CONCURRENCY
    visibility_timeout: int = DEFAULT_VISIBILITY_TIMEOUT
    manifest_batch_size: int = DEFAULT_MANIFEST_BATCH_SIZE
    unmatched_files: UnmatchedFilePolicy = UnmatchedFilePolicy.DROP
    aws_region: str | None = None


def _parse_backend(value: str) -> Backend:
    if value == "local":
        return "local"
    if value == "aws":
        return "aws"
    raise InvalidSettingError("PDRFLOW_BACKEND", value, "'local' or 'aws'")


def _parse_policy(value: str) -> UnmatchedFilePolicy:
    try:
        return UnmatchedFilePolicy(value.lower())
    except ValueError:
        allowed = ", ".join(policy.value for policy in UnmatchedFilePolicy)
        raise InvalidSettingError("PDRFLOW_UNMATCHED_FILES", value, f"one of {allowed}") from None


def get_ingest_config(*, storage: StorageConfig | None = None) -> IngestConfig:
    """Build the ingest configuration from ``PDRFLOW_*`` environment variables."""

    storage_config = storage or get_storage_config()
    definitions_path = Path(require_env_var("PDRFLOW_DEFINITIONS")).expanduser()

    database_uri = os.getenv("PDRFLOW_DATABASE_URI") or storage_config.database_uri()
    staging_env = os.getenv("PDRFLOW_STAGING_ROOT")
    staging_root = Path(staging_env) if staging_env else storage_config.staging_root()

    return IngestConfig(
        definitions_path=definitions_path,
        database_uri=database_uri,
        backend=_parse_backend(env_str("PDRFLOW_BACKEND", "local")),
        staging_root=staging_root,
        queues=QueueNames(
            manifests=env_str("PDRFLOW_MANIFEST_QUEUE", DEFAULT_QUEUES.manifests),
            granules=env_str("PDRFLOW_GRANULE_QUEUE", DEFAULT_QUEUES.granules),
            processing=env_str("PDRFLOW_PROCESSING_QUEUE", DEFAULT_QUEUES.processing),
        ),
        staging=StagingTarget(bucket=env_str("PDRFLOW_BUCKET", DEFAULT_BUCKET)),
        concurrency=env_int("PDRFLOW_CONCURRENCY", DEFAULT_CONCURRENCY, minimum=1),
        visibility_timeout=env_int(
            "PDRFLOW_VISIBILITY_TIMEOUT", DEFAULT_VISIBILITY_TIMEOUT, minimum=0
        ),
        manifest_batch_size=env_int(
            "PDRFLOW_MANIFEST_BATCH_SIZE", DEFAULT_MANIFEST_BATCH_SIZE, minimum=1
        ),
        unmatched_files=_parse_policy(env_str("PDRFLOW_UNMATCHED_FILES", "drop")),
        aws_region=os.getenv("AWS_REGION") or None,
    )
