"""SQLAlchemy mapping metadata for the ticketpipe domain model."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import cache

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Index,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    orm,
)

from ticketpipe.domain.model import Atom, CheckinRecord, Principal, RedactedAtom

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

atom_table = Table(
    "atom",
    mapper_registry.metadata,
    Column("id", String(36), primary_key=True),
    Column("pipeline_id", String, nullable=False),
    Column("position_id", String, nullable=False),
    Column("email", String, nullable=False),
    Column("name", String, nullable=False, default=""),
    Column("event_id", String, nullable=False),
    Column("product_id", String, nullable=False),
    Column("secret", String, nullable=True),
    Column("is_consumed", Boolean, nullable=False, default=False),
    Column("is_revoked", Boolean, nullable=False, default=False),
    Column("provider_checkin_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=False),
    UniqueConstraint("pipeline_id", "position_id"),
    Index("ix_atom_pipeline_email", "pipeline_id", "email"),
    Index("ix_atom_pipeline_event", "pipeline_id", "event_id"),
)

redacted_atom_table = Table(
    "redacted_atom",
    mapper_registry.metadata,
    Column("id", String(36), primary_key=True),
    Column("pipeline_id", String, nullable=False, index=True),
    Column("position_id", String, nullable=False),
    Column("hashed_email", String(64), nullable=False, index=True),
    Column("event_id", String, nullable=False),
    Column("product_id", String, nullable=False),
    Column("secret", String, nullable=True),
    Column("is_consumed", Boolean, nullable=False, default=False),
    Column("provider_checkin_at", UTCDateTime(), nullable=True),
    Column("redacted_at", UTCDateTime(), nullable=False),
)

# atom_id as primary key: the store can never hold two check-ins for one atom
checkin_table = Table(
    "checkin",
    mapper_registry.metadata,
    Column("atom_id", String(36), primary_key=True),
    Column("pipeline_id", String, nullable=False, index=True),
    Column("checker_email", String, nullable=False),
    Column("checked_in_at", UTCDateTime(), nullable=False),
    Column("offline", Boolean, nullable=False, default=False),
)

principal_table = Table(
    "principal",
    mapper_registry.metadata,
    Column("commitment", String, primary_key=True),
    Column("email", String, nullable=False, index=True),
    Column("created_at", UTCDateTime(), nullable=False),
)

artifact_cache_table = Table(
    "artifact_cache",
    mapper_registry.metadata,
    Column("key", String(64), primary_key=True),
    Column("value", Text, nullable=False),
    Column("stored_at", UTCDateTime(), nullable=False, index=True),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Atom, atom_table)
    mapper_registry.map_imperatively(RedactedAtom, redacted_atom_table)
    mapper_registry.map_imperatively(CheckinRecord, checkin_table)
    mapper_registry.map_imperatively(Principal, principal_table)

    return mapper_registry

