"""
Repository base class.

Repositories read from Supabase and keep a SQLite copy of what they have
seen.  When Supabase cannot be reached the copy answers instead; when the
copy has nothing either, :class:`CacheMiss` tells the caller the data is
unavailable rather than absent.
"""

from __future__ import annotations

import sqlite3
from typing import Callable, Optional, TypeVar

from supabase import Client as SupabaseClient

from sessionflow.database import DatabaseManager
from sessionflow.logger import StructuredLogger

T = TypeVar("T")


class CacheMiss(Exception):
    """Supabase failed and the local cache had no copy."""

    def __init__(self, operation_name: str, original_error: Exception) -> None:
        self.original_error: Exception = original_error
        super().__init__(f"{operation_name}: {original_error}")


class BaseRepository:
    """Shared connection access and cloud-first reads."""

    TABLE: str = ""

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    @property
    def supabase(self) -> SupabaseClient:
        """Raises ``RuntimeError`` when offline."""
        return self._db.supabase

    @property
    def sqlite(self) -> sqlite3.Connection:
        return self._db.sqlite

    def _read_with_cache(
        self,
        supabase_op: Callable[[], Optional[T]],
        sqlite_op: Callable[[], Optional[T]],
        *,
        operation_name: str,
        on_supabase_success: Optional[Callable[[T], None]] = None,
    ) -> Optional[T]:
        """Run *supabase_op*; on failure answer from *sqlite_op*.

        ``None`` from Supabase means the row does not exist and is
        returned without consulting the cache.  A non-``None`` result is
        handed to *on_supabase_success* (cache warming); a failure there
        is logged and does not affect the returned value.

        Raises:
            CacheMiss: Supabase failed and the cache returned nothing.
        """
        try:
            result = supabase_op()
        except Exception as exc:
            self._logger.warning(
                "%s: Supabase read failed (%s); trying local cache.",
                operation_name, exc,
            )
            cached = self._read_cache(sqlite_op, operation_name)
            if cached is None:
                raise CacheMiss(operation_name, exc) from exc
            return cached

        if result is not None and on_supabase_success is not None:
            try:
                on_supabase_success(result)
            except Exception as exc:
                self._logger.warning("%s: cache update failed (%s).", operation_name, exc)
        return result

    def _read_cache(
        self,
        sqlite_op: Callable[[], Optional[T]],
        operation_name: str,
    ) -> Optional[T]:
        try:
            return sqlite_op()
        except sqlite3.Error as exc:
            self._logger.error("%s: local cache read failed (%s).", operation_name, exc)
            return None
