"""Ports for fetching provider records and mapping them into atoms."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ticketpipe.domain.model import Atom, PipelineDefinition


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class RawRecords:
    """Provider records as fetched, before mapping into atoms."""

    records: Sequence[object]
    fetched_at: datetime = field(default_factory=_utcnow)

    def __len__(self) -> int:
        return len(self.records)


@runtime_checkable
class ProviderAdapter(Protocol):
    """Reads one provider and maps its records into atoms.

    ``fetch`` has no side effect beyond the remote read and raises
    ``FetchError`` on network, auth and timeout failures. ``to_atoms`` raises
    ``TranslationError`` when records cannot be mapped.
    """

    def fetch(self, definition: PipelineDefinition) -> RawRecords: ...

    def to_atoms(self, definition: PipelineDefinition, raw: RawRecords) -> list[Atom]: ...


__all__ = ["ProviderAdapter", "RawRecords"]
