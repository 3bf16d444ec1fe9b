"""Engine construction from :class:`DatabaseConfig`.

SQLite URLs get WAL journaling and foreign keys switched on at connect
time; other dialects are passed straight to ``create_engine``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url

if TYPE_CHECKING:
    from bond.config.models import DatabaseConfig


def create_db_engine(config: DatabaseConfig) -> Engine:
    """Create an engine for ``config.url``."""
    url = make_url(config.url)
    engine = create_engine(url, echo=config.echo, pool_pre_ping=config.pool_pre_ping)

    if url.get_backend_name() == "sqlite":
        _install_sqlite_pragmas(
            engine,
            wal=config.sqlite_wal,
            foreign_keys=config.sqlite_foreign_keys,
        )
    return engine


def _install_sqlite_pragmas(engine: Engine, *, wal: bool, foreign_keys: bool) -> None:
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
        cursor = dbapi_conn.cursor()
        if wal:
            cursor.execute("PRAGMA journal_mode=WAL")
        if foreign_keys:
            cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
