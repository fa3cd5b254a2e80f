"""Fan a parsed manifest out into granule records and file-transfer messages."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Final

from pdrflow.domain.classification import classify
from pdrflow.domain.errors import DuplicateGranuleError, IngestConfigurationError
from pdrflow.domain.granules import DiscoveredFile, build_granule_record, resolve_granule_id
from pdrflow.domain.ingest_pipeline.messages import FileTransferMessage, GranuleMessage
from pdrflow.domain.manifest import file_groups
from pdrflow.domain.model import ManifestStatus, UnmatchedFilePolicy, join_url

if TYPE_CHECKING:
    from pdrflow.config import QueueNames, StagingTarget
    from pdrflow.domain.ingest_pipeline.lifecycle import LifecycleManager
    from pdrflow.domain.manifest import FileGroup, ManifestTree
    from pdrflow.domain.model import CollectionDefinition, ProviderDefinition
    from pdrflow.domain.ports import DefinitionCatalog, MessageQueue

log = getLogger(__name__)

DEFAULT_CONCURRENCY: Final[int] = 5


class GroupOutcome(StrEnum):
    QUEUED = "queued"
    SKIPPED = "skipped"
    EMPTY = "empty"


@dataclass(slots=True)
class DispatchResult:
    manifest_name: str
    chunk_sizes: list[int] = field(default_factory=list[int])
    granules_queued: int = 0
    granules_skipped: int = 0
    files_queued: int = 0
    failed: bool = False
    error: str | None = None


@dataclass(slots=True)
class _GroupResult:
    outcome: GroupOutcome
    files: int = 0


@dataclass(slots=True)
class DispatchEngine:
    """Walk a manifest's file groups in chunks of ``concurrency``.

    Every group in a chunk is handled concurrently; the next chunk starts only
    once the whole chunk has settled. The first failure in a chunk fails the
    manifest.
    """

    lifecycle: LifecycleManager
    queue: MessageQueue
    catalog: DefinitionCatalog
    queues: QueueNames
    staging: StagingTarget
    unmatched: UnmatchedFilePolicy = UnmatchedFilePolicy.DROP

    async def dispatch(
        self,
        tree: ManifestTree,
        provider: ProviderDefinition,
        *,
        manifest_name: str,
        collection: CollectionDefinition | None = None,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> DispatchResult:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        result = DispatchResult(manifest_name=manifest_name)
        run = _ManifestRun(self, provider, manifest_name, collection)
        try:
            groups = file_groups(tree)
            for start in range(0, len(groups), concurrency):
                chunk = groups[start : start + concurrency]
                result.chunk_sizes.append(len(chunk))
                outcomes = await asyncio.gather(
                    *(run.dispatch_group(group) for group in chunk),
                    return_exceptions=True,
                )
                for outcome in outcomes:
                    if isinstance(outcome, BaseException):
                        raise outcome
                    _tally(result, outcome)

            await self.lifecycle.advance_manifest_status(
                manifest_name, ManifestStatus.PARSED, granule_count=result.granules_queued
            )
            await self.lifecycle.complete_manifest_if_done(manifest_name)
        except IngestConfigurationError as exc:
            log.warning("Manifest %s failed: %s", manifest_name, exc)
            await self._fail(result, exc)
        except Exception as exc:
            log.exception("Dispatching manifest %s failed", manifest_name)
            await self._fail(result, exc)

        log.info(
            "Manifest %s: %d granule(s) queued, %d skipped, %d file(s) queued in %d chunk(s)",
            manifest_name,
            result.granules_queued,
            result.granules_skipped,
            result.files_queued,
            len(result.chunk_sizes),
        )
        return result

    async def _fail(self, result: DispatchResult, exc: Exception) -> None:
        result.failed = True
        result.error = str(exc) or type(exc).__name__
        await self.lifecycle.mark_manifest_failed(result.manifest_name, result.error)


def _tally(result: DispatchResult, group: _GroupResult) -> None:
    if group.outcome is GroupOutcome.QUEUED:
        result.granules_queued += 1
        result.files_queued += group.files
    elif group.outcome is GroupOutcome.SKIPPED:
        result.granules_skipped += 1


class _ManifestRun:
    """Per-manifest dispatch state, shared by the groups of every chunk."""

    def __init__(
        self,
        engine: DispatchEngine,
        provider: ProviderDefinition,
        manifest_name: str,
        collection: CollectionDefinition | None,
    ) -> None:
        self.engine = engine
        self.provider = provider
        self.manifest_name = manifest_name
        self.fixed_collection = collection
        self.collections: dict[str, CollectionDefinition] = {}
        self.granule_ids: set[str] = set()

    def collection_for(self, group: FileGroup) -> CollectionDefinition:
        if self.fixed_collection is not None:
            return self.fixed_collection
        name = classify(group.specs[0].file_id, self.provider.regex)
        if name not in self.collections:
            self.collections[name] = self.engine.catalog.get_collection(name)
        return self.collections[name]

    async def dispatch_group(self, group: FileGroup) -> _GroupResult:
        if group.is_empty:
            log.info("Manifest %s: file group %d is empty", self.manifest_name, group.index)
            return _GroupResult(GroupOutcome.EMPTY)

        engine = self.engine
        collection = self.collection_for(group)
        granule_id = resolve_granule_id(group, collection)
        # The manifest completion map holds one flag per granule id.
        if granule_id in self.granule_ids:
            raise DuplicateGranuleError(granule_id, manifest_name=self.manifest_name)
        self.granule_ids.add(granule_id)

        if await engine.lifecycle.granule_already_ingested(
            granule_id, collection.collection_name
        ):
            log.info("Granule %s was already ingested, skipping", granule_id)
            return _GroupResult(GroupOutcome.SKIPPED)

        sources = [
            join_url(self.provider.host, spec.directory_id, spec.file_id) for spec in group.specs
        ]
        record = build_granule_record(
            collection,
            granule_id,
            [DiscoveredFile(url=url) for url in sources],
            pdr_name=self.manifest_name,
            unmatched=engine.unmatched,
        )
        stored = await engine.lifecycle.record_granule(record)
        if stored is None:
            return _GroupResult(GroupOutcome.SKIPPED)

        for spec, url in zip(group.specs, sources, strict=True):
            message = FileTransferMessage(
                granule_id=granule_id,
                collection_name=collection.collection_name,
                pdr_name=self.manifest_name,
                file_name=spec.file_id,
                url=url,
                bucket=engine.staging.bucket,
                key=engine.staging.file_key(
                    collection.collection_name, granule_id, spec.file_id
                ),
            )
            await engine.queue.send(engine.queues.granules, message.to_payload())

        if self.provider.bulk_dispatch:
            bulk = GranuleMessage.from_record(stored)
            await engine.queue.send(engine.queues.processing, bulk.to_payload())

        log.debug("Granule %s queued with %d file(s)", granule_id, len(group.specs))
        return _GroupResult(GroupOutcome.QUEUED, files=len(group.specs))
