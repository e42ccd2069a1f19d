from __future__ import annotations

import io
import uuid

import pytest

from sessionflow.auth import SessionManager
from sessionflow.config import AppConfig
from sessionflow.logger import StructuredLogger
from sessionflow.services.profile_service import ProfileService
from sessionflow.services.session_flow import SessionFlowController
from tests.fixtures.dummies import FakeIdentityProvider, FakeProfileStore


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        SUPABASE_URL="https://example.supabase.co",
        SUPABASE_ANON_KEY="anon-key",
        SQLITE_PATH=":memory:",
        LOG_FILE="",
    )


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(log_stream: io.StringIO) -> StructuredLogger:
    # Unique name so every test gets a fresh handler bound to its stream.
    return StructuredLogger(
        name=f"test-{uuid.uuid4().hex}",
        stream=log_stream,
        log_file="",
    )


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def store() -> FakeProfileStore:
    return FakeProfileStore()


@pytest.fixture
def session() -> SessionManager:
    return SessionManager()


@pytest.fixture
def profile_service(store, config, logger) -> ProfileService:
    return ProfileService(store=store, config=config, logger=logger)


@pytest.fixture
def controller(provider, profile_service, session, config, logger) -> SessionFlowController:
    return SessionFlowController(
        provider=provider,
        profiles=profile_service,
        session=session,
        config=config,
        logger=logger,
    )
