"""
Structured Audit Logging Utility.

Every session state change is logged as one schema-validated JSON
object, so the auth trail can be filtered by action or principal.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, Field

from sessionflow.logger import StructuredLogger

__all__ = ["AuditEvent", "log_audit_event"]

# Scalar type permitted inside the ``details`` mapping.
DetailValue = Union[str, int, float, bool, None]


class AuditEvent(BaseModel):
    """Schema-validated representation of a single audit trail entry."""

    timestamp: str
    action: str
    principal_id: str
    from_state: str
    to_state: str
    details: dict[str, DetailValue] = Field(default_factory=dict)


def log_audit_event(
    logger: StructuredLogger,
    action: str,
    principal_id: Optional[str],
    from_state: str,
    to_state: str,
    details: Optional[dict[str, DetailValue]] = None,
) -> AuditEvent:
    """Log a structured JSON audit event for a session transition.

    Args:
        logger: The logger instance to write to.
        action: What happened (e.g. ``"REGISTER"``, ``"SIGN_IN"``,
            ``"PHONE_SIGN_IN"``, ``"SIGN_OUT"``).
        principal_id: Affected principal, ``"anonymous"`` when unknown.
        from_state: Session state before the transition.
        to_state: Session state after the transition.
        details: Optional additional context.

    Returns:
        The validated event that was logged.
    """
    event = AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        action=action,
        principal_id=principal_id or "anonymous",
        from_state=str(from_state),
        to_state=str(to_state),
        details=details or {},
    )
    logger.info("AUDIT: %s", json.dumps(event.model_dump(), default=str))
    return event
