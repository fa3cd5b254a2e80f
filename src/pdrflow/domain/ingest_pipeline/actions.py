"""Message actions run by the queue consumers.

Both actions tolerate redelivery: a staged file is not uploaded twice, and a
manifest that has moved past ``queued`` is not dispatched again.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from pdrflow.domain.errors import IngestConfigurationError, ParseError
from pdrflow.domain.ingest_pipeline.dispatch import DEFAULT_CONCURRENCY
from pdrflow.domain.ingest_pipeline.messages import FileTransferMessage, ManifestMessage
from pdrflow.domain.manifest import parse
from pdrflow.domain.model import GranuleStatus, ManifestStatus, granule_key

if TYPE_CHECKING:
    from pdrflow.domain.ingest_pipeline.dispatch import DispatchEngine, DispatchResult
    from pdrflow.domain.ingest_pipeline.lifecycle import LifecycleManager
    from pdrflow.domain.ports import DefinitionCatalog, ObjectStore, QueueMessage

log = getLogger(__name__)


async def upload_if_missing(objects: ObjectStore, source: str, bucket: str, key: str) -> str:
    """Upload ``source`` unless the target object already exists; return its URI."""

    if await objects.exists(bucket, key):
        log.info("%s already staged at %s/%s", source, bucket, key)
        return objects.uri(bucket, key)
    return await objects.upload(source, bucket, key)


@dataclass(slots=True)
class TransferFileAction:
    objects: ObjectStore
    lifecycle: LifecycleManager

    async def __call__(self, message: QueueMessage) -> None:
        payload = FileTransferMessage.from_body(message.body)
        log.info("Ingesting %s", payload.file_name)
        staged = await upload_if_missing(self.objects, payload.url, payload.bucket, payload.key)
        record = await self.lifecycle.record_file_staged(
            granule_key(payload.granule_id, payload.collection_name),
            payload.file_name,
            payload.url,
            staged,
        )
        if record.status is GranuleStatus.COMPLETED:
            await self.lifecycle.mark_granule_in_manifest(
                record.pdr_name, record.granule_id, True
            )


@dataclass(slots=True)
class ParseManifestAction:
    objects: ObjectStore
    lifecycle: LifecycleManager
    catalog: DefinitionCatalog
    engine: DispatchEngine
    concurrency: int = DEFAULT_CONCURRENCY

    async def __call__(self, message: QueueMessage) -> DispatchResult | None:
        payload = ManifestMessage.from_body(message.body)
        record = await self.lifecycle.find_manifest(payload.pdr_name)
        if record is None:
            log.warning("Manifest %s has no record; dropping the message", payload.pdr_name)
            return None
        if record.status not in (ManifestStatus.DISCOVERED, ManifestStatus.QUEUED):
            log.info("Manifest %s is %s, not parsing it again", payload.pdr_name, record.status)
            return None

        try:
            provider = self.catalog.get_provider(payload.provider_name)
            collection = (
                self.catalog.get_collection(payload.collection_name)
                if payload.collection_name
                else None
            )
        except IngestConfigurationError as exc:
            log.warning("Manifest %s cannot be dispatched: %s", payload.pdr_name, exc)
            await self.lifecycle.mark_manifest_failed(payload.pdr_name, str(exc))
            return None

        raw = await self.objects.read(payload.bucket, payload.key)
        try:
            tree = parse(raw.decode("utf-8", errors="replace"))
        except ParseError as exc:
            log.warning("Manifest %s could not be parsed: %s", payload.pdr_name, exc)
            await self.lifecycle.mark_manifest_failed(payload.pdr_name, str(exc))
            return None

        return await self.engine.dispatch(
            tree,
            provider,
            manifest_name=payload.pdr_name,
            collection=collection,
            concurrency=self.concurrency,
        )
