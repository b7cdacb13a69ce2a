"""SQLAlchemy adapter package for ticketpipe."""

from __future__ import annotations

from .cache_store import SqlAlchemyArtifactStore
from .mappings import mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyAtomRepository,
    SqlAlchemyCacheEntryRepository,
    SqlAlchemyCheckinRepository,
    SqlAlchemyPrincipalRepository,
    SqlAlchemyRedactedAtomRepository,
)
from .unit_of_work import (
    SqlAlchemyCacheUnitOfWork,
    SqlAlchemyTicketUnitOfWork,
    create_database_engine,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyArtifactStore",
    "SqlAlchemyAtomRepository",
    "SqlAlchemyCacheEntryRepository",
    "SqlAlchemyCacheUnitOfWork",
    "SqlAlchemyCheckinRepository",
    "SqlAlchemyPrincipalRepository",
    "SqlAlchemyRedactedAtomRepository",
    "SqlAlchemyTicketUnitOfWork",
    "create_database_engine",
    "mapper_registry",
    "shutdown",
    "startup",
]
