"""Default HTTP profiles for Pretix organiser APIs."""

from __future__ import annotations

from typing import Final

from .http_resilience import JSON_HEADERS, CacheConfig, RateLimit, ResilienceConfig

PRETIX_TIMEOUT_SECONDS: Final[float] = 20.0
PRETIX_METADATA_TTL_SECONDS: Final[float] = 300.0


def pretix_orders_resilience(base_url: str) -> ResilienceConfig:
    """Profile for order listings. Never cached: every sync must see live data."""

    return ResilienceConfig(
        name="pretix-orders",
        base_url=base_url,
        timeout_seconds=PRETIX_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        cache=None,
        default_headers=JSON_HEADERS,
    )


def pretix_metadata_resilience(base_url: str) -> ResilienceConfig:
    """Profile for event and item metadata, which changes rarely."""

    return ResilienceConfig(
        name="pretix-metadata",
        base_url=base_url,
        timeout_seconds=PRETIX_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        cache=CacheConfig(backend="memory", default_ttl_seconds=PRETIX_METADATA_TTL_SECONDS),
        default_headers=JSON_HEADERS,
    )
