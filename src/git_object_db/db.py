"""
Engine creation and schema setup.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine import make_url

from git_object_db.schema import metadata

LOG = logging.getLogger(__name__)


def make_engine(url: str) -> Engine:
    """Create an engine for ``url``; SQLite files get WAL journaling."""
    parsed = make_url(url)
    if parsed.get_backend_name() in ("sqlite", "duckdb") and parsed.database:
        if parsed.database != ":memory:":
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, future=True)

    if parsed.get_backend_name() == "sqlite":

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return engine


def init_db(engine: Engine) -> None:
    """Create all tables and indexes that do not exist yet."""
    metadata.create_all(engine)
    LOG.debug("schema ready on %s", engine.url.render_as_string(hide_password=True))
