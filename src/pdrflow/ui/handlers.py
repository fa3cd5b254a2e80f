"""Event handlers for serverless-style invocation.

Each handler takes a JSON-like event and a ``callback(error, message)``. The
callback is called exactly once; handlers never raise.
"""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from pdrflow.app import (
    build_services,
    consume_files,
    consume_manifests,
    discover_manifests,
)
from pdrflow.config import get_ingest_config
from pdrflow.config.ingest import DEFAULT_CONCURRENCY, DEFAULT_VISIBILITY_TIMEOUT

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from pdrflow.app import IngestServices

log = getLogger(__name__)

type Callback = Callable[[Exception | None, str | None], object]
type ServicesFactory = Callable[[], IngestServices]


class HandlerEvent(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )


class DiscoverEvent(HandlerEvent):
    collection_name: str | None = None
    provider_name: str | None = None

    @model_validator(mode="after")
    def _require_target(self) -> Self:
        if self.collection_name is None and self.provider_name is None:
            raise ValueError("event needs collectionName or providerName")
        return self


class ConsumeEvent(HandlerEvent):
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)
    visibility_timeout: int = Field(default=DEFAULT_VISIBILITY_TIMEOUT, ge=0)
    num_of_messages: int = Field(default=1, ge=1)
    max_iterations: int = Field(default=-1, ge=-1)


def default_services() -> IngestServices:
    return build_services(get_ingest_config())


def discover_handler(
    event: Mapping[str, object],
    callback: Callback,
    *,
    services_factory: ServicesFactory = default_services,
) -> None:
    try:
        request = DiscoverEvent.model_validate(event)
        result = asyncio.run(
            discover_manifests(
                services_factory(),
                provider_name=request.provider_name,
                collection_name=request.collection_name,
            )
        )
    except Exception as exc:
        log.exception("Manifest discovery failed")
        callback(exc, None)
        return
    callback(
        None,
        f"Provider {result.provider_name}: {len(result.queued)} manifest(s) queued, "
        f"{len(result.failed)} failed",
    )


def consume_files_handler(
    event: Mapping[str, object],
    callback: Callback,
    *,
    services_factory: ServicesFactory = default_services,
) -> None:
    try:
        request = ConsumeEvent.model_validate(event)
        iterations = asyncio.run(
            consume_files(
                services_factory(),
                concurrency=request.concurrency,
                visibility_timeout=request.visibility_timeout,
                max_iterations=request.max_iterations,
            )
        )
    except Exception as exc:
        log.exception("File consumer failed")
        callback(exc, None)
        return
    callback(None, f"File consumer stopped after {iterations} iteration(s)")


def consume_manifests_handler(
    event: Mapping[str, object],
    callback: Callback,
    *,
    services_factory: ServicesFactory = default_services,
) -> None:
    try:
        request = ConsumeEvent.model_validate(event)
        iterations = asyncio.run(
            consume_manifests(
                services_factory(),
                num_messages=request.num_of_messages,
                visibility_timeout=request.visibility_timeout,
                concurrency=request.concurrency,
                max_iterations=request.max_iterations,
            )
        )
    except Exception as exc:
        log.exception("Manifest consumer failed")
        callback(exc, None)
        return
    callback(None, f"Manifest consumer stopped after {iterations} iteration(s)")
