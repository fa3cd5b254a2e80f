"""httpx mock transports plugged under ``ResilientClient``."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from pdrflow.adapters.http_resilience import ResilientClient
from pdrflow.config import ResilienceConfig, RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Callable

NO_RETRY = ResilienceConfig(name="test", timeout_seconds=1.0, retry=RetryPolicy(total=0))


def make_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        return ResilientClient(resilience, transport=httpx.MockTransport(async_handler))

    return factory
