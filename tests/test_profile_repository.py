"""Tests for the Supabase-backed profile repository and its SQLite cache."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from sessionflow.config import AppConfig
from sessionflow.database import DatabaseManager
from sessionflow.models.profile import ProfileRecord
from sessionflow.providers.base import ProfileStore, ProfileStoreError
from sessionflow.repositories.profile_repository import ProfileRepository
from sessionflow.schema import CURRENT_SCHEMA_VERSION, initialize_schema


CREATED_AT = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def db(client, logger):
    manager = DatabaseManager(
        supabase_url="",
        supabase_key="",
        sqlite_path=":memory:",
        logger=logger,
        supabase_client=client,
    )
    initialize_schema(manager.sqlite, logger)
    yield manager
    manager.close()


@pytest.fixture
def repo(db, logger) -> ProfileRepository:
    return ProfileRepository(db=db, logger=logger, table="users")


def _record() -> ProfileRecord:
    return ProfileRecord(
        principal_id="uid-1",
        email="a@b.com",
        username="alice",
        created_at=CREATED_AT,
    )


def _cached_row(db, principal_id="uid-1"):
    return db.sqlite.execute(
        "SELECT * FROM profile_cache WHERE principal_id = ?", (principal_id,)
    ).fetchone()


class TestSchema:
    def test_version_recorded(self, db):
        row = db.sqlite.execute("SELECT version FROM schema_version").fetchone()
        assert row[0] == CURRENT_SCHEMA_VERSION

    def test_initialize_is_idempotent(self, db, logger):
        initialize_schema(db.sqlite, logger)
        initialize_schema(db.sqlite, logger)

        count = db.sqlite.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
        assert count == 1


class TestDatabaseManager:
    def test_unconfigured_is_offline(self, logger):
        config = AppConfig(SUPABASE_URL="", SQLITE_PATH=":memory:", LOG_FILE="")

        manager = DatabaseManager.from_config(config, logger)

        assert not manager.is_online
        with pytest.raises(RuntimeError):
            manager.supabase
        manager.close()


class TestProfileRepository:
    def test_satisfies_store_contract(self, repo):
        assert isinstance(repo, ProfileStore)

    def test_put_upserts_and_caches(self, repo, client, db):
        repo.put("uid-1", _record())

        client.table.assert_called_with("users")
        payload = client.table.return_value.upsert.call_args.args[0]
        assert payload == {
            "uid": "uid-1",
            "email": "a@b.com",
            "username": "alice",
            "created_at": CREATED_AT.isoformat(),
        }
        assert _cached_row(db)["username"] == "alice"

    def test_put_failure_raises_and_skips_cache(self, repo, client, db):
        client.table.return_value.upsert.return_value.execute.side_effect = RuntimeError("denied")

        with pytest.raises(ProfileStoreError):
            repo.put("uid-1", _record())

        assert _cached_row(db) is None

    def test_query_reads_supabase_and_warms_cache(self, repo, client, db):
        query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.return_value = MagicMock(data=[{
            "uid": "uid-1",
            "email": "a@b.com",
            "username": "alice",
            "created_at": CREATED_AT.isoformat(),
        }])

        record = repo.query_by_principal_id("uid-1")

        assert record.username == "alice"
        assert record.created_at == CREATED_AT
        client.table.return_value.select.return_value.eq.assert_called_with("uid", "uid-1")
        assert _cached_row(db)["email"] == "a@b.com"

    def test_query_missing_row_is_none(self, repo, client):
        query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.return_value = MagicMock(data=[])

        assert repo.query_by_principal_id("uid-1") is None

    def test_query_falls_back_to_cache(self, repo, client):
        repo.put("uid-1", _record())
        query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.side_effect = ConnectionError("offline")

        record = repo.query_by_principal_id("uid-1")

        assert record.username == "alice"

    def test_query_unreachable_without_cache_raises(self, repo, client):
        query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.side_effect = ConnectionError("offline")

        with pytest.raises(ProfileStoreError):
            repo.query_by_principal_id("uid-1")

    def test_offline_manager_raises_store_error(self, logger):
        offline = DatabaseManager(
            supabase_url="",
            supabase_key="",
            sqlite_path=":memory:",
            logger=logger,
        )
        initialize_schema(offline.sqlite, logger)
        repo = ProfileRepository(db=offline, logger=logger)

        assert not offline.is_online
        with pytest.raises(ProfileStoreError):
            repo.put("uid-1", _record())
        with pytest.raises(ProfileStoreError):
            repo.query_by_principal_id("uid-1")
        offline.close()
        offline.close()
