from __future__ import annotations

"""
Data Models Package.

Re-exports the session flow models:
    from sessionflow.models import Principal, VerificationHandle, ProfileRecord
    from sessionflow.models import AuthResult, AuthErrorCode, SessionState
"""

from sessionflow.models.auth_models import (
    AuthErrorCode,
    AuthResult,
    PhoneCodeOutcome,
    ValidationResult,
)
from sessionflow.models.enums import PhoneOutcomeKind, SessionState
from sessionflow.models.principal import Principal, VerificationHandle
from sessionflow.models.profile import ProfileErrorCode, ProfileRecord, ProfileResult

__all__ = [
    "AuthErrorCode",
    "AuthResult",
    "PhoneCodeOutcome",
    "PhoneOutcomeKind",
    "Principal",
    "ProfileErrorCode",
    "ProfileRecord",
    "ProfileResult",
    "SessionState",
    "ValidationResult",
    "VerificationHandle",
]
