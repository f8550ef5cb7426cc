"""SQLite backend for the CLI's local store and the test suite.

The same ORM tables run on SQLite through ``aiosqlite``.  Differences from
PostgreSQL:

* foreign keys are switched on per connection, so cascades and orphan
  checks behave as they do in production;
* timestamps are stored naive and re-tagged as UTC by ``UTCDateTime``;
* JSON columns are stored as TEXT.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


def sqlite_url(db_path: Path | str) -> str:
    """Return the aiosqlite URL for *db_path* (or an in-memory database)."""
    if str(db_path) == MEMORY:
        return f"sqlite+aiosqlite:///{MEMORY}"
    return f"sqlite+aiosqlite:///{Path(db_path)}"


def get_local_engine(db_path: Path | str = ".whizrobot/state.db") -> AsyncEngine:
    """Create an aiosqlite engine for a state file.

    Parameters
    ----------
    db_path:
        Location of the SQLite file; missing parent directories are
        created.  ``:memory:`` gives a throwaway database.
    """
    if str(db_path) != MEMORY:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    url = sqlite_url(db_path)
    engine = create_async_engine(url, connect_args={"check_same_thread": False})

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_conn: object, _: object) -> None:
        cursor = dbapi_conn.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        if str(db_path) != MEMORY:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    logger.debug("SQLite engine ready: %s", url)
    return engine
