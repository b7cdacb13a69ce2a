"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError

from ticketpipe.adapters.sqlalchemy.mappings import (
    artifact_cache_table,
    atom_table,
    checkin_table,
    principal_table,
    redacted_atom_table,
)
from ticketpipe.domain.errors import CheckinConflictError
from ticketpipe.domain.model import Atom, CheckinRecord, Principal, RedactedAtom, normalize_email

if TYPE_CHECKING:
    from collections.abc import Collection
    from datetime import datetime

    from sqlalchemy.orm import Session


class SqlAlchemyAtomRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, atom_id: str) -> Atom | None:
        return self.session.get(Atom, atom_id)

    def list_for_pipeline(self, pipeline_id: str) -> list[Atom]:
        stmt = (
            select(Atom)
            .where(atom_table.c.pipeline_id == pipeline_id)
            .order_by(atom_table.c.position_id)
        )
        return list(self.session.execute(stmt).scalars())

    def list_by_email(self, pipeline_id: str, email: str) -> list[Atom]:
        stmt = (
            select(Atom)
            .where(atom_table.c.pipeline_id == pipeline_id)
            .where(atom_table.c.email == normalize_email(email))
            .order_by(atom_table.c.position_id)
        )
        return list(self.session.execute(stmt).scalars())

    def list_by_events(self, pipeline_id: str, event_ids: Collection[str]) -> list[Atom]:
        if not event_ids:
            return []
        stmt = (
            select(Atom)
            .where(atom_table.c.pipeline_id == pipeline_id)
            .where(atom_table.c.event_id.in_(list(event_ids)))
            .order_by(atom_table.c.event_id, atom_table.c.position_id)
        )
        return list(self.session.execute(stmt).scalars())

    def count(self, pipeline_id: str) -> int:
        stmt = select(func.count()).select_from(atom_table).where(
            atom_table.c.pipeline_id == pipeline_id
        )
        return int(self.session.execute(stmt).scalar_one())

    def upsert(self, atom: Atom) -> None:
        # merge replaces the whole row: last writer wins
        self.session.merge(atom)

    def delete(self, atom_ids: Collection[str]) -> int:
        if not atom_ids:
            return 0
        result = self.session.execute(
            delete(Atom).where(atom_table.c.id.in_(list(atom_ids))),
            execution_options={"synchronize_session": "fetch"},
        )
        return int(result.rowcount)  # type: ignore[attr-defined]


class SqlAlchemyRedactedAtomRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, atom_id: str) -> RedactedAtom | None:
        return self.session.get(RedactedAtom, atom_id)

    def list_ids(self, pipeline_id: str) -> set[str]:
        stmt = select(redacted_atom_table.c.id).where(
            redacted_atom_table.c.pipeline_id == pipeline_id
        )
        return set(self.session.execute(stmt).scalars())

    def list_by_hashed_email(self, hashed_email: str) -> list[RedactedAtom]:
        stmt = (
            select(RedactedAtom)
            .where(redacted_atom_table.c.hashed_email == hashed_email)
            .order_by(redacted_atom_table.c.id)
        )
        return list(self.session.execute(stmt).scalars())

    def upsert(self, atom: RedactedAtom) -> None:
        self.session.merge(atom)

    def delete(self, atom_ids: Collection[str]) -> int:
        if not atom_ids:
            return 0
        result = self.session.execute(
            delete(RedactedAtom).where(redacted_atom_table.c.id.in_(list(atom_ids))),
            execution_options={"synchronize_session": "fetch"},
        )
        return int(result.rowcount)  # type: ignore[attr-defined]


class SqlAlchemyCheckinRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, atom_id: str) -> CheckinRecord | None:
        return self.session.get(CheckinRecord, atom_id)

    def list_for_atoms(self, atom_ids: Collection[str]) -> dict[str, CheckinRecord]:
        if not atom_ids:
            return {}
        stmt = select(CheckinRecord).where(checkin_table.c.atom_id.in_(list(atom_ids)))
        return {record.atom_id: record for record in self.session.execute(stmt).scalars()}

    def consumed_ids(self, pipeline_id: str) -> set[str]:
        stmt = select(checkin_table.c.atom_id).where(checkin_table.c.pipeline_id == pipeline_id)
        return set(self.session.execute(stmt).scalars())

    def add(self, record: CheckinRecord) -> None:
        """Insert ``record`` immediately so a concurrent check-in surfaces here.

        On conflict the session must be rolled back by the owning unit of work.
        """

        self.session.add(record)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise CheckinConflictError(record.atom_id) from exc

    def delete(self, atom_id: str) -> bool:
        record = self.session.get(CheckinRecord, atom_id)
        if record is None:
            return False
        self.session.delete(record)
        return True


class SqlAlchemyPrincipalRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_commitment(self, commitment: str) -> Principal | None:
        return self.session.get(Principal, commitment)

    def list_by_email(self, email: str) -> list[Principal]:
        stmt = select(Principal).where(principal_table.c.email == normalize_email(email))
        return list(self.session.execute(stmt).scalars())

    def add(self, principal: Principal) -> None:
        self.session.add(principal)


class SqlAlchemyCacheEntryRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, key: str) -> tuple[str, datetime] | None:
        stmt = select(artifact_cache_table.c.value, artifact_cache_table.c.stored_at).where(
            artifact_cache_table.c.key == key
        )
        row = self.session.execute(stmt).one_or_none()
        if row is None:
            return None
        return str(row.value), row.stored_at

    def put(self, key: str, value: str, stored_at: datetime) -> None:
        self.delete(key)
        self.session.execute(
            artifact_cache_table.insert().values(key=key, value=value, stored_at=stored_at)
        )

    def delete(self, key: str) -> None:
        self.session.execute(artifact_cache_table.delete().where(artifact_cache_table.c.key == key))

    def delete_oldest(self, keep: int) -> int:
        """Trim the table to the ``keep`` most recently stored entries."""

        survivors = (
            select(artifact_cache_table.c.key)
            .order_by(artifact_cache_table.c.stored_at.desc())
            .limit(keep)
        )
        result = self.session.execute(
            artifact_cache_table.delete().where(artifact_cache_table.c.key.not_in(survivors))
        )
        return int(result.rowcount)  # type: ignore[attr-defined]


if TYPE_CHECKING:
    from sqlalchemy.orm import Session as _Session

    from ticketpipe.domain.ports.persistence import (
        AtomRepository,
        CacheEntryRepository,
        CheckinRepository,
        PrincipalRepository,
        RedactedAtomRepository,
    )

    _session: _Session
    _atoms_check: AtomRepository = SqlAlchemyAtomRepository(_session)
    _redacted_check: RedactedAtomRepository = SqlAlchemyRedactedAtomRepository(_session)
    _checkins_check: CheckinRepository = SqlAlchemyCheckinRepository(_session)
    _principals_check: PrincipalRepository = SqlAlchemyPrincipalRepository(_session)
    _cache_check: CacheEntryRepository = SqlAlchemyCacheEntryRepository(_session)
