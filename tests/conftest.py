from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from ticketpipe.adapters.crypto import generate_private_key_hex
from ticketpipe.adapters.sqlalchemy import (
    SqlAlchemyCacheUnitOfWork,
    SqlAlchemyTicketUnitOfWork,
    create_database_engine,
    shutdown,
    startup,
)
from ticketpipe.config import IssuanceConfig

from tests.helpers.ticketing import MutableClock

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from sqlalchemy.engine import Engine


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_database_engine("sqlite+pysqlite:///:memory:")
    startup(engine=engine, force=True)
    try:
        yield engine
    finally:
        shutdown()


@pytest.fixture
def file_engine(tmp_path: Path) -> Iterator[Engine]:
    """File-backed store for tests that hit the database from several threads."""

    engine = create_database_engine(f"sqlite+pysqlite:///{tmp_path / 'ticketpipe.db'}")
    startup(engine=engine, force=True)
    try:
        yield engine
    finally:
        shutdown()


@pytest.fixture
def ticket_uow_factory(sqlite_engine: Engine) -> Callable[[], SqlAlchemyTicketUnitOfWork]:
    _ = sqlite_engine
    return SqlAlchemyTicketUnitOfWork


@pytest.fixture
def cache_uow_factory(sqlite_engine: Engine) -> Callable[[], SqlAlchemyCacheUnitOfWork]:
    _ = sqlite_engine
    return SqlAlchemyCacheUnitOfWork


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def issuance_config() -> IssuanceConfig:
    return IssuanceConfig(
        eddsa_private_key=generate_private_key_hex(),
        server_url="https://tickets.example.org",
        provider_name="Example Tickets",
        credential_max_age_seconds=600,
        artifact_cache_max_entries=100,
        verification_cache_max_entries=100,
        sync_interval_seconds=30.0,
    )
