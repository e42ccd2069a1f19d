"""
Local cache schema.

The SQLite file holds a single data table, ``profile_cache``: the last
profile record seen for each principal, refreshed on every successful
cloud read or write.  A one-row ``schema_version`` table records which
version of the layout the file carries, so later releases can migrate it
in place.

Call :func:`initialize_schema` once at startup, after opening the
connection::

    initialize_schema(db.sqlite, StructuredLogger(name="schema"))
"""

from __future__ import annotations

import sqlite3

from sessionflow.logger import StructuredLogger

__all__ = ["CURRENT_SCHEMA_VERSION", "initialize_schema"]

CURRENT_SCHEMA_VERSION: int = 1

_VERSION_TABLE = """
    CREATE TABLE IF NOT EXISTS schema_version (
        id         INTEGER PRIMARY KEY CHECK (id = 1),
        version    INTEGER NOT NULL,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
"""

# Version number -> DDL that brings the file from the previous version to it.
_MIGRATIONS: dict[int, list[str]] = {
    1: [
        """
        CREATE TABLE IF NOT EXISTS profile_cache (
            principal_id TEXT PRIMARY KEY,
            email        TEXT,
            username     TEXT NOT NULL,
            created_at   TEXT NOT NULL,
            cached_at    TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """,
    ],
}


def _read_version(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT version FROM schema_version WHERE id = 1").fetchone()
    return int(row[0]) if row else 0


def initialize_schema(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    """Apply every migration newer than the file's version.

    Idempotent.  All pending migrations run in one transaction; if any
    statement fails nothing is applied and the error propagates.
    """
    conn.execute(_VERSION_TABLE)
    conn.commit()

    version = _read_version(conn)
    pending = [v for v in sorted(_MIGRATIONS) if v > version]
    if not pending:
        logger.info("Local cache schema at version %d.", version)
        return

    try:
        for target in pending:
            for ddl in _MIGRATIONS[target]:
                conn.execute(ddl)
        conn.execute(
            """
            INSERT INTO schema_version (id, version) VALUES (1, ?)
            ON CONFLICT(id) DO UPDATE SET
                version    = excluded.version,
                applied_at = CURRENT_TIMESTAMP
            """,
            (pending[-1],),
        )
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        logger.error("Local cache migration from version %d failed.", version)
        raise

    logger.info("Local cache schema migrated from version %d to %d.", version, pending[-1])
