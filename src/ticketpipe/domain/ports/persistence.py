"""Ports for persisting atoms, check-ins, principals and cached artifacts."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from datetime import datetime

    from ticketpipe.domain.model import Atom, CheckinRecord, Principal, RedactedAtom


@runtime_checkable
class AtomRepository(Protocol):
    """Atom store scoped by pipeline id."""

    def get(self, atom_id: str) -> Atom | None: ...

    def list_for_pipeline(self, pipeline_id: str) -> list[Atom]: ...

    def list_by_email(self, pipeline_id: str, email: str) -> list[Atom]: ...

    def list_by_events(self, pipeline_id: str, event_ids: Collection[str]) -> list[Atom]: ...

    def count(self, pipeline_id: str) -> int: ...

    def upsert(self, atom: Atom) -> None: ...

    def delete(self, atom_ids: Collection[str]) -> int: ...


@runtime_checkable
class RedactedAtomRepository(Protocol):
    """Holding set for consumed atoms that vanished upstream."""

    def get(self, atom_id: str) -> RedactedAtom | None: ...

    def list_ids(self, pipeline_id: str) -> set[str]: ...

    def list_by_hashed_email(self, hashed_email: str) -> list[RedactedAtom]: ...

    def upsert(self, atom: RedactedAtom) -> None: ...

    def delete(self, atom_ids: Collection[str]) -> int: ...


@runtime_checkable
class CheckinRepository(Protocol):
    """Local consumption records; at most one per atom."""

    def get(self, atom_id: str) -> CheckinRecord | None: ...

    def list_for_atoms(self, atom_ids: Collection[str]) -> dict[str, CheckinRecord]: ...

    def consumed_ids(self, pipeline_id: str) -> set[str]: ...

    def add(self, record: CheckinRecord) -> None: ...

    def delete(self, atom_id: str) -> bool: ...


@runtime_checkable
class PrincipalRepository(Protocol):
    def get_by_commitment(self, commitment: str) -> Principal | None: ...

    def list_by_email(self, email: str) -> Sequence[Principal]: ...

    def add(self, principal: Principal) -> None: ...


@runtime_checkable
class CacheEntryRepository(Protocol):
    """Durable key/value entries backing the artifact cache."""

    def get(self, key: str) -> tuple[str, datetime] | None: ...

    def put(self, key: str, value: str, stored_at: datetime) -> None: ...

    def delete(self, key: str) -> None: ...

    def delete_oldest(self, keep: int) -> int: ...
