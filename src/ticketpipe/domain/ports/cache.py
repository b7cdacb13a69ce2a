"""Storage port behind the artifact cache and verification memo."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class CacheStore[TValue](Protocol):
    """Bounded key/value store. ``get`` returns ``None`` for absent or expired keys."""

    def get(self, key: str) -> TValue | None: ...

    def set(self, key: str, value: TValue) -> None: ...
