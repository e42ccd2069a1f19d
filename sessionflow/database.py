"""
Connections.

``DatabaseManager`` holds the two handles the session flow talks to:

- the **Supabase client**, whose ``auth`` namespace is the identity
  provider and whose ``users`` table stores profiles;
- a **SQLite connection** to the local profile cache.

Queries live in the repositories and the provider adapter; this module
only opens, exposes and closes the connections.

Usage::

    db = DatabaseManager.from_config(get_config(), StructuredLogger(name="database"))
    try:
        ...
    finally:
        db.close()
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Optional, Union

from supabase import create_client, Client as SupabaseClient

from sessionflow.config import AppConfig
from sessionflow.logger import StructuredLogger

_MEMORY_DB = ":memory:"


def _create_supabase_client(
    url: str,
    key: str,
    logger: StructuredLogger,
) -> Optional[SupabaseClient]:
    """Build a client, or return ``None`` (offline) when that is impossible."""
    if not url or not key:
        logger.warning("Supabase is not configured; identity calls will fail offline.")
        return None
    try:
        client = create_client(url, key)
    except (ValueError, TypeError) as exc:
        logger.warning("Rejected Supabase credentials (%s); starting offline.", exc)
        return None
    except Exception as exc:
        logger.error("Supabase client creation failed (%s); starting offline.", exc, exc_info=True)
        return None
    logger.info("Supabase client ready.")
    return client


class DatabaseManager:
    """Owner of the Supabase client and the local SQLite connection.

    Without credentials there is no client: :attr:`supabase` raises
    ``RuntimeError``, the identity adapter turns that into a connection
    failure and profile reads are answered from the SQLite cache.

    Parameters
    ----------
    supabase_url, supabase_key:
        Project URL and anonymous key.
    sqlite_path:
        Cache database file, or ``":memory:"``.
    logger:
        Structured JSON logger.
    supabase_client:
        Ready-made client (tests, embedding apps); the URL and key are
        then ignored.
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        sqlite_path: Union[Path, str],
        logger: StructuredLogger,
        supabase_client: Optional[SupabaseClient] = None,
    ) -> None:
        self._logger = logger
        self._write_lock = threading.RLock()
        self._closed = False

        if supabase_client is not None:
            self._supabase: Optional[SupabaseClient] = supabase_client
        else:
            self._supabase = _create_supabase_client(supabase_url, supabase_key, logger)

        self._sqlite_conn: sqlite3.Connection = self._open_sqlite(str(sqlite_path))

    @classmethod
    def from_config(cls, config: AppConfig, logger: StructuredLogger) -> "DatabaseManager":
        return cls(
            supabase_url=config.SUPABASE_URL,
            supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
            sqlite_path=config.SQLITE_PATH,
            logger=logger,
        )

    @property
    def supabase(self) -> SupabaseClient:
        """The Supabase client.

        Raises:
            RuntimeError: When running offline.
        """
        if self._supabase is None:
            raise RuntimeError("Supabase is unavailable (offline mode).")
        return self._supabase

    @property
    def is_online(self) -> bool:
        return self._supabase is not None

    @property
    def sqlite(self) -> sqlite3.Connection:
        return self._sqlite_conn

    @property
    def write_lock(self) -> threading.RLock:
        """Hold while writing to SQLite and committing."""
        return self._write_lock

    def close(self) -> None:
        """Close the SQLite connection; repeated calls do nothing."""
        with self._write_lock:
            if self._closed:
                return
            self._closed = True
            self._sqlite_conn.close()
        self._logger.info("Local cache closed.")

    def _open_sqlite(self, path: str) -> sqlite3.Connection:
        """Open the cache database with ``Row`` results.

        Raises:
            PermissionError: The file or its directory is not writable.
        """
        try:
            conn = sqlite3.connect(path, check_same_thread=False)
        except PermissionError as exc:
            message = f"Cannot open the local cache at '{path}': permission denied."
            self._logger.error(message)
            raise PermissionError(message) from exc

        conn.row_factory = sqlite3.Row
        if path != _MEMORY_DB:
            conn.execute("PRAGMA journal_mode=WAL;")
        self._logger.info("Local cache opened at %s", path)
        return conn
