"""Discover new manifests on a provider, stage them and queue them for parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

from pdrflow.domain.errors import ProviderNotFoundError
from pdrflow.domain.ingest_pipeline.lifecycle import DEFAULT_MANIFEST_BATCH_SIZE
from pdrflow.domain.ingest_pipeline.messages import ManifestMessage
from pdrflow.domain.model import ManifestStatus

if TYPE_CHECKING:
    from pdrflow.config import QueueNames, StagingTarget
    from pdrflow.domain.ingest_pipeline.lifecycle import LifecycleManager
    from pdrflow.domain.model import CollectionDefinition, ProviderDefinition
    from pdrflow.domain.ports import DiscoverySource, ListingEntry, MessageQueue, ObjectStore

log = getLogger(__name__)

UNREACHABLE_MANIFEST: Final[str] = "PDR file was not reachable"


@dataclass(slots=True)
class DiscoveryResult:
    provider_name: str
    listed: int = 0
    queued: list[str] = field(default_factory=list[str])
    failed: list[str] = field(default_factory=list[str])


@dataclass(slots=True)
class ManifestDiscovery:
    provider: ProviderDefinition
    source: DiscoverySource
    lifecycle: LifecycleManager
    objects: ObjectStore
    queue: MessageQueue
    queues: QueueNames
    staging: StagingTarget
    collection: CollectionDefinition | None = None
    batch_size: int = DEFAULT_MANIFEST_BATCH_SIZE

    async def discover(self) -> list[ListingEntry]:
        """List the provider endpoint and keep the entries that look like manifests."""

        endpoint = self.provider.endpoint
        try:
            entries = await self.source.list(endpoint)
        except ProviderNotFoundError as exc:
            await self.lifecycle.deactivate_provider(self.provider.name, str(exc))
            raise
        pattern = re.compile(self.provider.manifest_pattern)
        manifests = [entry for entry in entries if pattern.search(entry.name)]
        log.info(
            "Provider %s lists %d entries, %d manifest(s)",
            self.provider.name,
            len(entries),
            len(manifests),
        )
        return manifests

    async def ingest(self) -> DiscoveryResult:
        result = DiscoveryResult(provider_name=self.provider.name)
        manifests = await self.discover()
        result.listed = len(manifests)
        fresh = await self.lifecycle.find_new_manifests(manifests, batch_size=self.batch_size)
        for entry in fresh:
            if await self._stage_and_queue(entry):
                result.queued.append(entry.name)
            else:
                result.failed.append(entry.name)
        log.info(
            "Provider %s: %d new manifest(s) queued, %d failed",
            self.provider.name,
            len(result.queued),
            len(result.failed),
        )
        return result

    async def _stage_and_queue(self, entry: ListingEntry) -> bool:
        bucket = self.staging.bucket
        key = self.staging.manifest_key(entry.name)
        collection_name = self.collection.collection_name if self.collection else None
        try:
            address = await self.objects.upload(entry.url, bucket, key)
        except Exception as exc:
            log.warning("Could not stage manifest %s from %s: %s", entry.name, entry.url, exc)
            await self.lifecycle.record_manifest(
                entry,
                provider_name=self.provider.name,
                failed=True,
                error=UNREACHABLE_MANIFEST,
                collection_name=collection_name,
            )
            return False

        await self.lifecycle.record_manifest(
            entry,
            provider_name=self.provider.name,
            address=address,
            collection_name=collection_name,
        )
        message = ManifestMessage(
            pdr_name=entry.name,
            provider_name=self.provider.name,
            original_url=entry.url,
            bucket=bucket,
            key=key,
            collection_name=collection_name,
        )
        try:
            await self.queue.send(self.queues.manifests, message.to_payload())
        except Exception as exc:
            log.exception("Could not queue manifest %s", entry.name)
            await self.lifecycle.mark_manifest_failed(entry.name, str(exc))
            return False
        await self.lifecycle.advance_manifest_status(entry.name, ManifestStatus.QUEUED)
        return True
