"""
Profile Repository.

Implements the ``ProfileStore`` contract: the Supabase ``users`` table is
authoritative (one row per principal, keyed by ``uid``) and SQLite keeps
a read cache of the rows this device has seen.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Optional

from sessionflow.database import DatabaseManager
from sessionflow.logger import StructuredLogger
from sessionflow.models.profile import ProfileRecord
from sessionflow.providers.base import ProfileStoreError
from sessionflow.repositories.base_repository import BaseRepository, CacheMiss


def _row_to_record(row: dict[str, object]) -> ProfileRecord:
    return ProfileRecord(
        principal_id=str(row["uid"]),
        email=row.get("email"),
        username=str(row["username"]),
        created_at=row["created_at"],
    )


class ProfileRepository(BaseRepository):
    """Data access layer for profile records.

    There is no update or delete: a profile is written once, right after
    the account is created.
    """

    TABLE = "users"

    def __init__(
        self,
        db: DatabaseManager,
        logger: StructuredLogger,
        table: Optional[str] = None,
    ) -> None:
        super().__init__(db, logger)
        if table:
            self.TABLE = table

    def put(self, principal_id: str, record: ProfileRecord) -> None:
        """Write *record* to Supabase, then cache it locally.

        Raises:
            ProfileStoreError: If the Supabase write fails.  The local
                cache is not touched in that case.
        """
        payload: dict[str, object] = {
            "uid": principal_id,
            "email": record.email,
            "username": record.username,
            "created_at": record.created_at.isoformat(),
        }
        try:
            self.supabase.table(self.TABLE).upsert(payload).execute()
        except Exception as exc:
            raise ProfileStoreError(
                f"Could not save profile for {principal_id}: {exc}",
                original_error=exc,
            ) from exc

        self._logger.info(
            "Profile saved for %s.", principal_id,
            extra={"event": "PROFILE_SAVED", "principal_id": principal_id},
        )
        try:
            self._cache_to_sqlite(record)
        except sqlite3.Error as exc:
            self._logger.warning("Could not cache profile %s: %s", principal_id, exc)

    def query_by_principal_id(self, principal_id: str) -> Optional[ProfileRecord]:
        """Return the profile for *principal_id*, or ``None`` if none exists.

        Raises:
            ProfileStoreError: If Supabase is unreachable and the local
                cache has no copy.
        """
        def _supabase() -> Optional[ProfileRecord]:
            response = (
                self.supabase.table(self.TABLE)
                .select("*")
                .eq("uid", principal_id)
                .limit(1)
                .execute()
            )
            rows = response.data or []
            return _row_to_record(rows[0]) if rows else None

        def _sqlite() -> Optional[ProfileRecord]:
            row = self.sqlite.execute(
                "SELECT * FROM profile_cache WHERE principal_id = ?",
                (principal_id,),
            ).fetchone()
            return ProfileRecord(**dict(row)) if row else None

        try:
            return self._read_with_cache(
                supabase_op=_supabase,
                sqlite_op=_sqlite,
                operation_name=f"query_by_principal_id ({self.TABLE})",
                on_supabase_success=self._cache_to_sqlite,
            )
        except CacheMiss as exc:
            raise ProfileStoreError(str(exc), original_error=exc.original_error) from exc

    def _cache_to_sqlite(self, record: ProfileRecord) -> None:
        created_at: datetime = record.created_at
        with self._db.write_lock:
            self.sqlite.execute(
                """
                INSERT INTO profile_cache (principal_id, email, username, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(principal_id) DO UPDATE SET
                    email      = excluded.email,
                    username   = excluded.username,
                    created_at = excluded.created_at,
                    cached_at  = CURRENT_TIMESTAMP
                """,
                (record.principal_id, record.email, record.username, created_at.isoformat()),
            )
            self.sqlite.commit()
