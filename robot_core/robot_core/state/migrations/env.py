"""Alembic environment configuration for the licensing state store.

Supports both **online** (connected) and **offline** (SQL-generation) modes.
The database URL is resolved from the ``ALEMBIC_DATABASE_URL`` environment
variable, then ``sqlalchemy.url`` in ``alembic.ini``, then
``PLATFORM_DATABASE_URL`` through :class:`robot_core.config.Settings`.

``target_metadata`` is bound to ``robot_core.state.tables.Base.metadata`` so
that ``--autogenerate`` can detect drift against the ORM definitions.
"""

from __future__ import annotations

import logging
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import make_url

from robot_core.config import load_settings
from robot_core.state.tables import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata


def _get_database_url() -> str:
    """Resolve the migration URL and pin it to a synchronous driver.

    Alembic's ``MigrationContext`` cannot drive asyncpg or aiosqlite, so the
    runtime URL is rewritten to psycopg or pysqlite with the same target.
    """
    raw = os.environ.get("ALEMBIC_DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not raw:
        raw = load_settings().database_url

    url = make_url(raw)
    backend = url.get_backend_name()
    if backend == "postgresql":
        url = url.set(drivername="postgresql+psycopg")
        if url.query.get("ssl") == "require":
            url = url.difference_update_query(["ssl"]).update_query_dict({"sslmode": "require"})
    elif backend == "sqlite":
        url = url.set(drivername="sqlite")

    logger.info("Migrating %s database %s", backend, url.database)
    return url.render_as_string(hide_password=False)


def run_migrations_offline() -> None:
    """Emit migration SQL for the resolved URL without connecting."""
    context.configure(
        url=_get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run each revision inside a transaction on a synchronous engine."""
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = _get_database_url()

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()

    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
