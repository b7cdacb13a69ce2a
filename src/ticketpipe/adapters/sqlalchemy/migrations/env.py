"""Alembic environment for the ticket store.

``upgrade_head`` hands over an open connection through
``config.attributes["connection"]``; the standalone ``alembic`` command falls
back to ``sqlalchemy.url`` or the configured database URI.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from alembic import context
from sqlalchemy import create_engine, pool

from ticketpipe.adapters.sqlalchemy.mappings import mapper_registry, start_mappers
from ticketpipe.config import get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

config = context.config
log = logging.getLogger("alembic.env")

start_mappers()
target_metadata = mapper_registry.metadata

# SQLite cannot ALTER most constraints in place
_OPTIONS: dict[str, object] = {
    "target_metadata": target_metadata,
    "render_as_batch": True,
    "compare_type": True,
    "compare_server_default": True,
}


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or get_database_config().uri


def _migrate(connection: Connection) -> None:
    context.configure(connection=connection, **_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    context.configure(url=_database_url(), literal_binds=True, **_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    shared = config.attributes.get("connection")
    if shared is not None:
        _migrate(shared)
        return

    engine = create_engine(_database_url(), poolclass=pool.NullPool, future=True)
    try:
        with engine.connect() as connection:
            log.info("Migrating %s", engine.url.render_as_string(hide_password=True))
            _migrate(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
