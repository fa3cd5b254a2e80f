from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002

from pdrflow.adapters.sqlalchemy import create_all_tables
from pdrflow.config import QueueNames, StagingTarget
from pdrflow.domain.ingest_pipeline import DispatchEngine, LifecycleManager
from tests.support.fakes import (
    FakeClock,
    InMemoryMessageQueue,
    InMemoryObjectStore,
    InMemoryRecordStore,
)
from tests.support.manifests import make_catalog, make_collection, make_provider

if TYPE_CHECKING:
    from collections.abc import Iterator

    from pdrflow.adapters.definitions import StaticDefinitionCatalog


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def queue(clock: FakeClock) -> InMemoryMessageQueue:
    return InMemoryMessageQueue(clock=clock)


@pytest.fixture
def objects() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def lifecycle(store: InMemoryRecordStore, clock: FakeClock) -> LifecycleManager:
    return LifecycleManager(store, clock=clock)


@pytest.fixture
def queues() -> QueueNames:
    return QueueNames()


@pytest.fixture
def staging() -> StagingTarget:
    return StagingTarget()


@pytest.fixture
def catalog() -> StaticDefinitionCatalog:
    return make_catalog([make_collection()], [make_provider()])


@pytest.fixture
def dispatch_engine(
    lifecycle: LifecycleManager,
    queue: InMemoryMessageQueue,
    catalog: StaticDefinitionCatalog,
    queues: QueueNames,
    staging: StagingTarget,
) -> DispatchEngine:
    return DispatchEngine(
        lifecycle=lifecycle,
        queue=queue,
        catalog=catalog,
        queues=queues,
        staging=staging,
    )


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()
