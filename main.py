"""
SessionFlow Entry Point.

Bootstraps the dependency graph via constructor injection, initialises
the local SQLite schema and performs the splash-screen step: restore the
provider's session, if any, and greet the signed-in user.  UI shells
embed the same wiring and keep the controller for their lifetime.

Usage::

    python main.py
"""

from __future__ import annotations

import atexit
import sys

from sessionflow.auth import SessionManager
from sessionflow.config import get_config
from sessionflow.database import DatabaseManager
from sessionflow.logger import StructuredLogger, get_logger
from sessionflow.schema import initialize_schema
from sessionflow.services import create_services


def main() -> int:
    """Wire dependencies and restore the last session."""
    logger: StructuredLogger = get_logger("main")
    logger.info("Starting SessionFlow...")

    config = get_config()

    db = DatabaseManager.from_config(config, StructuredLogger(name="database"))
    atexit.register(db.close)

    initialize_schema(db.sqlite, StructuredLogger(name="schema"))
    if not db.is_online:
        logger.warning("Supabase unreachable; only cached profiles are available.")

    session = SessionManager()
    services = create_services(db=db, config=config, session=session)
    flow = services["session_flow"]

    try:
        result = flow.restore_session()
        if not result.success:
            logger.warning("Session restore failed: %s", result.error_message)
        elif session.is_authenticated:
            logger.info("Welcome, %s!", flow.display_name())
        else:
            logger.info("No active session; sign-in required.")
    finally:
        flow.dispose()
        db.close()

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
