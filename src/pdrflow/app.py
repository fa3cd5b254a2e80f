"""Application orchestration entry points.

``build_services`` wires the adapters selected by an ``IngestConfig``; the
coroutine entry points below run one discovery, one consumer or one local
manifest against those services.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import create_engine

from pdrflow.adapters.aws import S3ObjectStore, SqsMessageQueue
from pdrflow.adapters.definitions import load_definitions
from pdrflow.adapters.filesystem import FilesystemObjectStore
from pdrflow.adapters.http_listing import build_discovery_source
from pdrflow.adapters.sqlalchemy import (
    SqlAlchemyMessageQueue,
    SqlAlchemyRecordStore,
    create_all_tables,
)
from pdrflow.config import ConfigurationError
from pdrflow.domain.errors import ParseError
from pdrflow.domain.ingest_pipeline import (
    DispatchEngine,
    LifecycleManager,
    ManifestDiscovery,
    ParseManifestAction,
    QueueConsumer,
    TransferFileAction,
)
from pdrflow.domain.manifest import parse
from pdrflow.domain.ports import ListingEntry

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from pdrflow.adapters.http_resilience import ResilientClient
    from pdrflow.config import IngestConfig, ResilienceConfig
    from pdrflow.domain.ingest_pipeline import DiscoveryResult, DispatchResult
    from pdrflow.domain.model import CollectionDefinition, ProviderDefinition
    from pdrflow.domain.ports import (
        DefinitionCatalog,
        DiscoverySource,
        MessageQueue,
        ObjectStore,
        RecordStore,
    )

log = getLogger(__name__)


@dataclass(slots=True)
class IngestServices:
    config: IngestConfig
    catalog: DefinitionCatalog
    store: RecordStore
    queue: MessageQueue
    objects: ObjectStore
    listing_client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None
    lifecycle: LifecycleManager = field(init=False)
    engine: DispatchEngine = field(init=False)

    def __post_init__(self) -> None:
        self.lifecycle = LifecycleManager(self.store)
        self.engine = DispatchEngine(
            lifecycle=self.lifecycle,
            queue=self.queue,
            catalog=self.catalog,
            queues=self.config.queues,
            staging=self.config.staging,
            unmatched=self.config.unmatched_files,
        )

    def discovery_for(
        self,
        provider: ProviderDefinition,
        *,
        collection: CollectionDefinition | None = None,
        source: DiscoverySource | None = None,
    ) -> ManifestDiscovery:
        return ManifestDiscovery(
            provider=provider,
            source=source
            or build_discovery_source(provider, client_factory=self.listing_client_factory),
            lifecycle=self.lifecycle,
            objects=self.objects,
            queue=self.queue,
            queues=self.config.queues,
            staging=self.config.staging,
            collection=collection,
            batch_size=self.config.manifest_batch_size,
        )

    def file_consumer(self) -> QueueConsumer:
        action = TransferFileAction(objects=self.objects, lifecycle=self.lifecycle)
        return QueueConsumer(queue=self.queue, queue_id=self.config.queues.granules, action=action)

    def manifest_consumer(self, *, concurrency: int | None = None) -> QueueConsumer:
        action = ParseManifestAction(
            objects=self.objects,
            lifecycle=self.lifecycle,
            catalog=self.catalog,
            engine=self.engine,
            concurrency=concurrency or self.config.concurrency,
        )
        return QueueConsumer(queue=self.queue, queue_id=self.config.queues.manifests, action=action)


def build_services(
    config: IngestConfig,
    *,
    catalog: DefinitionCatalog | None = None,
) -> IngestServices:
    """Wire the adapters for ``config.backend``.

    Records always live in the SQL database at ``config.database_uri``; the
    ``aws`` backend swaps the local queue and staging directory for SQS and S3.
    """

    resolved_catalog = catalog or load_definitions(config.definitions_path)
    engine = create_engine(config.database_uri, future=True)
    create_all_tables(engine)
    store = SqlAlchemyRecordStore(engine)

    queue: MessageQueue
    objects: ObjectStore
    if config.backend == "aws":
        queue = SqsMessageQueue.from_config(config)
        objects = S3ObjectStore.from_config(config)
    else:
        if config.staging_root is None:
            raise ConfigurationError("The local backend needs a staging root directory")
        queue = SqlAlchemyMessageQueue(engine)
        objects = FilesystemObjectStore(config.staging_root)

    log.info("Using %s backend with database %s", config.backend, engine.url)
    return IngestServices(
        config=config,
        catalog=resolved_catalog,
        store=store,
        queue=queue,
        objects=objects,
    )


async def discover_manifests(
    services: IngestServices,
    *,
    provider_name: str | None = None,
    collection_name: str | None = None,
) -> DiscoveryResult:
    """Discover new manifests for a provider, or for the provider hosting a collection."""

    collection = None
    if collection_name is not None:
        collection = services.catalog.get_collection(collection_name)
        provider_name = provider_name or collection.provider_name
    if provider_name is None:
        raise ValueError("Discovery needs a provider name or a collection with a provider")

    provider = services.catalog.get_provider(provider_name)
    log.info("Discovering manifests for provider %s at %s", provider.name, provider.endpoint)
    return await services.discovery_for(provider, collection=collection).ingest()


async def consume_files(
    services: IngestServices,
    *,
    concurrency: int,
    visibility_timeout: int,
    max_iterations: int = -1,
) -> int:
    consumer = services.file_consumer()
    return await consumer.run(concurrency, visibility_timeout, max_iterations)


async def consume_manifests(
    services: IngestServices,
    *,
    num_messages: int = 1,
    visibility_timeout: int,
    concurrency: int | None = None,
    max_iterations: int = -1,
) -> int:
    consumer = services.manifest_consumer(concurrency=concurrency)
    return await consumer.run(num_messages, visibility_timeout, max_iterations)


async def ingest_manifest_file(
    services: IngestServices,
    path: Path,
    *,
    provider_name: str,
    collection_name: str | None = None,
    concurrency: int | None = None,
) -> DispatchResult:
    """Record a local manifest file and dispatch it without going through the queues."""

    provider = services.catalog.get_provider(provider_name)
    collection = services.catalog.get_collection(collection_name) if collection_name else None
    entry = ListingEntry(name=path.name, url=path.resolve().as_uri())

    if await services.lifecycle.find_manifest(entry.name) is None:
        await services.lifecycle.record_manifest(
            entry,
            provider_name=provider.name,
            address=entry.url,
            collection_name=collection_name,
        )

    try:
        tree = parse(path.read_text(encoding="utf-8"))
    except ParseError as exc:
        await services.lifecycle.mark_manifest_failed(entry.name, str(exc))
        raise
    return await services.engine.dispatch(
        tree,
        provider,
        manifest_name=entry.name,
        collection=collection,
        concurrency=concurrency or services.config.concurrency,
    )
