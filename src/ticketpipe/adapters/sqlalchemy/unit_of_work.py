"""SQLAlchemy-backed units of work for tickets and the artifact cache."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ticketpipe.adapters.sqlalchemy.mappings import start_mappers
from ticketpipe.adapters.sqlalchemy.migrations import upgrade_head
from ticketpipe.adapters.sqlalchemy.repositories import (
    SqlAlchemyAtomRepository,
    SqlAlchemyCacheEntryRepository,
    SqlAlchemyCheckinRepository,
    SqlAlchemyPrincipalRepository,
    SqlAlchemyRedactedAtomRepository,
)
from ticketpipe.config import get_database_config
from ticketpipe.domain.ports.unit_of_work import (
    CacheRepositories,
    RepositoryCollection,
    TicketRepositories,
)

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine
    from sqlalchemy.orm import Session


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


class _Database:
    """The engine this process talks to and the session factory bound to it."""

    __slots__ = ("engine", "sessions")

    def __init__(self) -> None:
        self.engine: Engine | None = None
        self.sessions: sessionmaker[Session] | None = None

    def install(self, engine: Engine | None) -> None:
        self.engine = engine
        self.sessions = (
            sessionmaker(bind=engine, expire_on_commit=False) if engine is not None else None
        )

    def require_sessions(self) -> sessionmaker[Session]:
        if self.sessions is None:
            raise StartupError(
                "No database configured; call ticketpipe.adapters.sqlalchemy.startup() first"
            )
        return self.sessions


_DATABASE = _Database()


def create_database_engine(database_uri: str) -> Engine:
    """Create an engine; SQLite connections are shared across scheduler and request threads."""

    if not database_uri.startswith("sqlite"):
        return create_engine(database_uri, future=True, pool_pre_ping=True)

    in_memory = ":memory:" in database_uri or database_uri.rstrip("/").endswith("://")
    engine = create_engine(
        database_uri,
        future=True,
        connect_args={"check_same_thread": False, "timeout": 30},
        # every thread must see the same in-memory database
        poolclass=StaticPool if in_memory else None,
    )

    @event.listens_for(engine, "connect")
    def _enable_wal(dbapi_connection: object, _record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the ticket store to ``engine`` (or ``database_uri``) and migrate it to head.

    Without either argument the URI comes from :func:`get_database_config`.
    """

    if _DATABASE.engine is not None and not force:
        raise StartupError("Database already configured; pass force=True to replace it")

    resolved = engine or create_database_engine(database_uri or get_database_config().uri)
    start_mappers()
    upgrade_head(engine=resolved)
    _DATABASE.install(resolved)


def configured_engine() -> Engine | None:
    return _DATABASE.engine


def is_started() -> bool:
    return _DATABASE.engine is not None


def shutdown() -> None:
    """Dispose the engine and forget it; the next :func:`startup` starts fresh."""

    if _DATABASE.engine is not None:
        _DATABASE.engine.dispose()
    _DATABASE.install(None)


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """One session per ``with`` block.

    Leaving the block closes the session, rolling back first when it is left
    through an exception. Anything not committed by then is discarded.
    """

    def __init__(self) -> None:
        self._sessions = _DATABASE.require_sessions()
        self._session: Session | None = None
        self._repositories: TRepositories | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        if self._session is not None:
            raise StartupError("Unit of work is already open")
        self._session = self._sessions()
        self._repositories = self._build_repositories(self._session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work is not open; use it in a with block")
        return self._session

    @property
    def repositories(self) -> TRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work is not open; use it in a with block")
        return self._repositories

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SqlAlchemyTicketUnitOfWork(BaseSqlAlchemyUnitOfWork[TicketRepositories]):
    """Unit of work over atoms, redacted atoms, check-ins and principals."""

    def _build_repositories(self, session: Session) -> TicketRepositories:
        return TicketRepositories(
            atoms=SqlAlchemyAtomRepository(session),
            redacted_atoms=SqlAlchemyRedactedAtomRepository(session),
            checkins=SqlAlchemyCheckinRepository(session),
            principals=SqlAlchemyPrincipalRepository(session),
        )


class SqlAlchemyCacheUnitOfWork(BaseSqlAlchemyUnitOfWork[CacheRepositories]):
    """Unit of work over the durable artifact cache table."""

    def _build_repositories(self, session: Session) -> CacheRepositories:
        return CacheRepositories(cache_entries=SqlAlchemyCacheEntryRepository(session))


if TYPE_CHECKING:
    from ticketpipe.domain.ports.unit_of_work import CacheUnitOfWork, TicketUnitOfWork

    _uow_ticket_check: TicketUnitOfWork = SqlAlchemyTicketUnitOfWork()
    _uow_cache_check: CacheUnitOfWork = SqlAlchemyCacheUnitOfWork()
