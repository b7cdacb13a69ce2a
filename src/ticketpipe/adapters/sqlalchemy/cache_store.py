"""Durable artifact cache store over the ``artifact_cache`` table."""

from __future__ import annotations

from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from ticketpipe.domain.clock import utcnow
from ticketpipe.domain.model import SerializedArtifact

if TYPE_CHECKING:
    from collections.abc import Callable

    from ticketpipe.domain.clock import Clock
    from ticketpipe.domain.ports.unit_of_work import CacheUnitOfWork

log = getLogger(__name__)


class SqlAlchemyArtifactStore:
    """Signed artifacts survive restarts; entries are bounded by count and age.

    Trimming drops the oldest-stored entries first. Reads leave ``stored_at``
    alone since it also anchors the TTL.
    """

    def __init__(
        self,
        unit_of_work_factory: Callable[[], CacheUnitOfWork],
        *,
        max_entries: int,
        ttl_seconds: float | None = None,
        clock: Clock = utcnow,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._uow_factory = unit_of_work_factory
        self.max_entries = max_entries
        self._ttl = timedelta(seconds=ttl_seconds) if ttl_seconds is not None else None
        self._clock = clock

    def get(self, key: str) -> SerializedArtifact | None:
        with self._uow_factory() as uow:
            entry = uow.repositories.cache_entries.get(key)
            if entry is None:
                return None
            value, stored_at = entry
            if self._ttl is not None and self._clock() - stored_at > self._ttl:
                uow.repositories.cache_entries.delete(key)
                uow.commit()
                log.debug("Expired cached artifact %s", key)
                return None
        return SerializedArtifact.from_json(value)

    def set(self, key: str, value: SerializedArtifact) -> None:
        with self._uow_factory() as uow:
            entries = uow.repositories.cache_entries
            entries.put(key, value.to_json(), self._clock())
            trimmed = entries.delete_oldest(self.max_entries)
            uow.commit()
        if trimmed:
            log.debug("Evicted %d cached artifacts", trimmed)


if TYPE_CHECKING:
    from ticketpipe.domain.ports.cache import CacheStore

    _factory: Callable[[], CacheUnitOfWork]
    _store_check: CacheStore[SerializedArtifact] = SqlAlchemyArtifactStore(_factory, max_entries=1)
