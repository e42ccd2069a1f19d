"""
Business Logic Services Package.

The ``create_services()`` factory wires the identity provider, the
profile repository and the services together, returning a typed dict
that the UI shell can consume without knowing the dependency graph.
"""

from __future__ import annotations

from typing import Optional, TypedDict

from sessionflow.auth import SessionManager
from sessionflow.config import AppConfig
from sessionflow.database import DatabaseManager
from sessionflow.logger import StructuredLogger, get_logger
from sessionflow.providers.supabase_identity import SupabaseIdentityProvider
from sessionflow.repositories.profile_repository import ProfileRepository
from sessionflow.services.profile_service import ProfileService
from sessionflow.services.session_flow import SessionFlowController


class ServiceContainer(TypedDict):
    """Typed container for all application services."""

    identity_provider: SupabaseIdentityProvider
    profile_repository: ProfileRepository
    profile_service: ProfileService
    session_flow: SessionFlowController


def create_services(
    db: DatabaseManager,
    config: AppConfig,
    session: SessionManager,
    logger: Optional[StructuredLogger] = None,
) -> ServiceContainer:
    """Wire all repositories and services together.

    This is the single composition root for the service layer.  Call it
    once per UI context; each context gets its own controller and
    should ``dispose()`` it on teardown.

    Args:
        db: Initialised DatabaseManager with Supabase + SQLite ready.
        config: Application configuration.
        session: Session holder shared with the UI shell.
        logger: Logger for every wired component (default ``services``).

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = logger or get_logger("services")

    identity_provider = SupabaseIdentityProvider(db=db, logger=logger)
    profile_repository = ProfileRepository(
        db=db,
        logger=logger,
        table=config.PROFILES_TABLE,
    )
    profile_service = ProfileService(
        store=profile_repository,
        config=config,
        logger=logger,
    )
    session_flow = SessionFlowController(
        provider=identity_provider,
        profiles=profile_service,
        session=session,
        config=config,
        logger=logger,
    )

    return ServiceContainer(
        identity_provider=identity_provider,
        profile_repository=profile_repository,
        profile_service=profile_service,
        session_flow=session_flow,
    )
