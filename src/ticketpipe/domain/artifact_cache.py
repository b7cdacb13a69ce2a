"""Content-addressed memoization for signed artifacts and credential verification.

Both caches are plain objects constructed once at startup and injected where
they are needed. Concurrent misses for one key are coalesced through an
explicit in-flight registry so the expensive producer runs at most once per
key at a time.
"""

from __future__ import annotations

import hashlib
import threading
import time
from collections import OrderedDict
from concurrent.futures import Future
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from ticketpipe.domain.model import SerializedArtifact
    from ticketpipe.domain.ports.cache import CacheStore

log = getLogger(__name__)


class CoalescingRegistry[TValue]:
    """In-flight productions keyed by fingerprint.

    The first caller for a key becomes the owner and runs the producer. Callers
    arriving while it runs block on the owner's future and receive the same
    result or the same exception. Failures are never remembered: once the
    owner finishes, the key leaves the registry.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._in_flight: dict[str, Future[TValue]] = {}

    def run(self, key: str, produce: Callable[[], TValue]) -> TValue:
        with self._lock:
            future = self._in_flight.get(key)
            owner = future is None
            if future is None:
                future = Future()
                self._in_flight[key] = future

        if not owner:
            return future.result()

        try:
            value = produce()
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(value)
            return value
        finally:
            with self._lock:
                del self._in_flight[key]

    def pending(self) -> int:
        with self._lock:
            return len(self._in_flight)


class MemoryCacheStore[TValue]:
    """Thread-safe LRU store bounded by entry count and optionally by age."""

    def __init__(
        self,
        *,
        max_entries: int,
        ttl_seconds: float | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._monotonic = monotonic
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, tuple[TValue, float]] = OrderedDict()

    def get(self, key: str) -> TValue | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, stored_at = entry
            if self.ttl_seconds is not None and self._monotonic() - stored_at > self.ttl_seconds:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    def set(self, key: str, value: TValue) -> None:
        with self._lock:
            self._entries[key] = (value, self._monotonic())
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


@dataclass(slots=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    productions: int = 0


class ArtifactCache:
    """``get_or_create`` over signed artifacts keyed by ticket fingerprint."""

    def __init__(self, store: CacheStore[SerializedArtifact]) -> None:
        self._store = store
        self._registry: CoalescingRegistry[SerializedArtifact] = CoalescingRegistry()
        self._stats_lock = threading.Lock()
        self.stats = CacheStats()

    def get_or_create(
        self,
        fingerprint: str,
        factory: Callable[[], SerializedArtifact],
    ) -> SerializedArtifact:
        cached = self._store.get(fingerprint)
        if cached is not None:
            self._record(hit=True)
            log.debug("Artifact cache hit for %s", fingerprint)
            return cached
        self._record(hit=False)
        return self._registry.run(fingerprint, lambda: self._produce(fingerprint, factory))

    def _produce(
        self,
        fingerprint: str,
        factory: Callable[[], SerializedArtifact],
    ) -> SerializedArtifact:
        # another owner may have stored the artifact between our miss and registration
        cached = self._store.get(fingerprint)
        if cached is not None:
            return cached
        artifact = factory()
        self._store.set(fingerprint, artifact)
        with self._stats_lock:
            self.stats.productions += 1
        log.debug("Artifact cache stored %s", fingerprint)
        return artifact

    def _record(self, *, hit: bool) -> None:
        with self._stats_lock:
            if hit:
                self.stats.hits += 1
            else:
                self.stats.misses += 1


class VerificationCache:
    """Memoized verification results keyed by the serialized credential bytes."""

    def __init__(self, store: CacheStore[bool]) -> None:
        self._store = store
        self._registry: CoalescingRegistry[bool] = CoalescingRegistry()

    @staticmethod
    def key_for(serialized: bytes) -> str:
        return hashlib.sha256(serialized).hexdigest()

    def verify(self, serialized: bytes, check: Callable[[], bool]) -> bool:
        key = self.key_for(serialized)
        cached = self._store.get(key)
        if cached is not None:
            return cached
        return self._registry.run(key, lambda: self._produce(key, check))

    def _produce(self, key: str, check: Callable[[], bool]) -> bool:
        cached = self._store.get(key)
        if cached is not None:
            return cached
        result = check()
        self._store.set(key, result)
        return result
