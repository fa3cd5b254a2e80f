"""Configuration types for resilient HTTP clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    total: int = 4
    backoff_factor: float = 0.5
    max_backoff_wait: float = 60.0
    respect_retry_after_header: bool = True
    allowed_methods: frozenset[str] = field(
        default_factory=lambda: frozenset({"GET", "HEAD", "OPTIONS"})
    )
    # 404 is deliberately absent: a missing endpoint is a provider-health signal.
    status_forcelist: frozenset[int] = field(
        default_factory=lambda: frozenset({429, 500, 502, 503, 504})
    )
    retry_on_exceptions: tuple[type[httpx.HTTPError], ...] = (
        httpx.TimeoutException,
        httpx.NetworkError,
        httpx.RemoteProtocolError,
    )
    backoff_jitter: float = 1.0


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    default_headers: Mapping[str, str] | None = None
    follow_redirects: bool = True


def listing_resilience(*, timeout_seconds: float = 2.0) -> ResilienceConfig:
    """Directory listings use a short timeout so an unreachable provider fails fast."""

    return ResilienceConfig(
        name="listing",
        timeout_seconds=timeout_seconds,
        retry=RetryPolicy(total=2),
        default_headers={"User-Agent": "pdrflow"},
    )


def transfer_resilience(*, max_calls: int = 10, per_seconds: float = 1.0) -> ResilienceConfig:
    return ResilienceConfig(
        name="transfer",
        timeout_seconds=300.0,
        ratelimit=RateLimit(max_calls=max_calls, per_seconds=per_seconds),
        default_headers={"User-Agent": "pdrflow"},
    )
