from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from ticketpipe.domain.artifact_cache import (
    ArtifactCache,
    CoalescingRegistry,
    MemoryCacheStore,
    VerificationCache,
)
from ticketpipe.domain.model import SerializedArtifact


def _artifact(tag: str) -> SerializedArtifact:
    return SerializedArtifact(type="eddsa-ticket-pcd", pcd=f'{{"id":"{tag}"}}')


def test_hit_returns_stored_artifact_without_calling_factory() -> None:
    cache = ArtifactCache(MemoryCacheStore(max_entries=10))
    calls: list[str] = []

    def factory() -> SerializedArtifact:
        calls.append("called")
        return _artifact("a")

    first = cache.get_or_create("fp", factory)
    second = cache.get_or_create("fp", factory)

    assert first is second
    assert calls == ["called"]
    assert (cache.stats.hits, cache.stats.misses, cache.stats.productions) == (1, 1, 1)


def test_factory_failures_are_not_cached() -> None:
    cache = ArtifactCache(MemoryCacheStore(max_entries=10))

    def broken() -> SerializedArtifact:
        raise RuntimeError("signer offline")

    with pytest.raises(RuntimeError, match="signer offline"):
        cache.get_or_create("fp", broken)

    assert cache.get_or_create("fp", lambda: _artifact("retry")).id == "retry"


def test_concurrent_misses_produce_once() -> None:
    cache = ArtifactCache(MemoryCacheStore(max_entries=10))
    release = threading.Event()
    calls: list[int] = []
    lock = threading.Lock()

    def slow_factory() -> SerializedArtifact:
        with lock:
            calls.append(1)
        release.wait(timeout=5)
        return _artifact("shared")

    with ThreadPoolExecutor(max_workers=8) as pool:
        futures = [pool.submit(cache.get_or_create, "fp", slow_factory) for _ in range(8)]
        # let every worker reach the cache before the producer finishes
        threading.Timer(0.2, release.set).start()
        results = [future.result(timeout=10) for future in futures]

    assert len(calls) == 1
    assert {result.pcd for result in results} == {_artifact("shared").pcd}


def test_registry_shares_owner_exception_with_waiters() -> None:
    registry: CoalescingRegistry[int] = CoalescingRegistry()
    started = threading.Event()
    release = threading.Event()

    def failing() -> int:
        started.set()
        release.wait(timeout=5)
        raise ValueError("boom")

    with ThreadPoolExecutor(max_workers=2) as pool:
        owner = pool.submit(registry.run, "key", failing)
        started.wait(timeout=5)
        waiter = pool.submit(registry.run, "key", lambda: 1)
        release.set()
        with pytest.raises(ValueError, match="boom"):
            owner.result(timeout=5)
        # the waiter either joined the failed production or ran after it left the registry
        try:
            assert waiter.result(timeout=5) == 1
        except ValueError:
            pass

    assert registry.pending() == 0


def test_memory_store_evicts_least_recently_used() -> None:
    store: MemoryCacheStore[int] = MemoryCacheStore(max_entries=2)
    store.set("a", 1)
    store.set("b", 2)
    assert store.get("a") == 1
    store.set("c", 3)

    assert store.get("b") is None
    assert store.get("a") == 1
    assert store.get("c") == 3
    assert len(store) == 2


def test_memory_store_expires_entries_after_ttl() -> None:
    now = [100.0]
    store: MemoryCacheStore[int] = MemoryCacheStore(
        max_entries=2, ttl_seconds=10, monotonic=lambda: now[0]
    )
    store.set("a", 1)
    now[0] += 5
    assert store.get("a") == 1
    now[0] += 6

    assert store.get("a") is None


def test_memory_store_rejects_non_positive_bound() -> None:
    with pytest.raises(ValueError, match="positive"):
        MemoryCacheStore(max_entries=0)


def test_verification_is_memoized_per_serialized_bytes() -> None:
    cache = VerificationCache(MemoryCacheStore(max_entries=10))
    checks: list[bytes] = []

    def check_for(payload: bytes) -> bool:
        checks.append(payload)
        return payload == b"good"

    assert cache.verify(b"good", lambda: check_for(b"good"))
    assert cache.verify(b"good", lambda: check_for(b"good"))
    assert not cache.verify(b"bad", lambda: check_for(b"bad"))
    assert not cache.verify(b"bad", lambda: check_for(b"bad"))

    assert checks == [b"good", b"bad"]
