"""Rate-limited, retrying and optionally caching async HTTP client."""

from __future__ import annotations

from typing import TYPE_CHECKING, TypedDict, Unpack

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage
from hishel.httpx import AsyncCacheClient
from httpx_retries import Retry, RetryTransport

from ticketpipe.config import get_storage_config

if TYPE_CHECKING:
    from types import TracebackType

    from httpx._types import HeaderTypes, QueryParamTypes, TimeoutTypes, URLTypes

    from ticketpipe.config import CacheConfig, ResilienceConfig, RetryPolicy


class RequestOptions(TypedDict, total=False):
    params: QueryParamTypes | None
    headers: HeaderTypes | None


class AsyncClientOptions(TypedDict, total=False):
    base_url: str
    timeout: TimeoutTypes
    headers: HeaderTypes
    transport: httpx.AsyncBaseTransport


def build_retry(policy: RetryPolicy) -> Retry:
    return Retry(
        total=policy.total,
        backoff_factor=policy.backoff_factor,
        max_backoff_wait=policy.max_backoff_wait,
        respect_retry_after_header=policy.respect_retry_after_header,
        allowed_methods=tuple(policy.allowed_methods),
        status_forcelist=tuple(policy.status_forcelist),
        retry_on_exceptions=policy.retry_on_exceptions,
        backoff_jitter=policy.backoff_jitter,
    )


def build_cache_storage(config: CacheConfig | None) -> AsyncSqliteStorage | None:
    """hishel storage for a profile; ``None`` when the profile is uncached."""

    if config is None or not config.enabled:
        return None
    match config.backend:
        case "memory":
            database_path = ":memory:"
        case "sqlite":
            database_path = config.sqlite_path or str(get_storage_config().http_cache_path())
        case _:
            raise ValueError(f"Unsupported cache backend: {config.backend}")
    return AsyncSqliteStorage(
        database_path=database_path,
        default_ttl=config.default_ttl_seconds,
        refresh_ttl_on_access=config.refresh_ttl_on_access,
    )


class ResilientClient:
    """Async client used by every provider adapter.

    Requests go through an ``AsyncLimiter`` when a rate limit is configured,
    through ``RetryTransport`` always, and through a hishel cache only when the
    profile asks for one.
    """

    def __init__(self, config: ResilienceConfig) -> None:
        self.config = config
        self._limiter = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit is not None
            else None
        )

        options: AsyncClientOptions = {
            "timeout": config.timeout_seconds,
            "transport": RetryTransport(retry=build_retry(config.retry)),
        }
        if config.base_url is not None:
            options["base_url"] = config.base_url
        if config.default_headers:
            options["headers"] = dict(config.default_headers)

        storage = build_cache_storage(config.cache)
        self._client: httpx.AsyncClient = (
            AsyncCacheClient(**options, storage=storage)
            if storage is not None
            else httpx.AsyncClient(**options)
        )

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, url: URLTypes, **kwargs: Unpack[RequestOptions]) -> httpx.Response:
        if self._limiter is None:
            return await self._client.get(url, **kwargs)
        async with self._limiter:
            return await self._client.get(url, **kwargs)


def default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)
