"""Default HTTP profile for the Lemonade ticketing API."""

from __future__ import annotations

from typing import Final

from .http_resilience import JSON_HEADERS, RateLimit, ResilienceConfig

LEMONADE_TIMEOUT_SECONDS: Final[float] = 20.0
LEMONADE_PAGE_SIZE: Final[int] = 100


def lemonade_resilience(base_url: str) -> ResilienceConfig:
    return ResilienceConfig(
        name="lemonade",
        base_url=base_url,
        timeout_seconds=LEMONADE_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        cache=None,
        default_headers=JSON_HEADERS,
    )
