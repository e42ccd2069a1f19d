"""
Authentication Flow Models.

Pydantic models and enumerations for the contracts between
``SessionFlowController``, the identity provider adapter and the UI
shell.  Every auth operation returns a structured, inspectable result
rather than raising for expected failures.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, model_validator

from sessionflow.models.enums import PhoneOutcomeKind, SessionState
from sessionflow.models.principal import Principal, VerificationHandle


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------

class AuthErrorCode(StrEnum):
    """Exhaustive enumeration of authentication error categories.

    ``VALIDATION_ERROR`` is always produced locally, before any
    provider call.  ``VERIFICATION_EXPIRED`` means the verification
    handle itself is dead and a new code must be requested, whereas
    ``CODE_EXPIRED`` and ``INVALID_CODE`` keep the handle usable.
    """

    VALIDATION_ERROR = "validation_error"
    ACCOUNT_NOT_FOUND = "account_not_found"
    INVALID_CREDENTIAL = "invalid_credential"
    EMAIL_ALREADY_IN_USE = "email_already_in_use"
    INVALID_CODE = "invalid_code"
    CODE_EXPIRED = "code_expired"
    VERIFICATION_EXPIRED = "verification_expired"
    PHONE_VERIFICATION_FAILED = "phone_verification_failed"
    PROVIDER_ERROR = "provider_error"
    NETWORK_ERROR = "network_error"
    NO_PENDING_VERIFICATION = "no_pending_verification"
    OPERATION_IN_PROGRESS = "operation_in_progress"
    OPERATION_CANCELLED = "operation_cancelled"


# ---------------------------------------------------------------------------
# Provider error-code mapping
# ---------------------------------------------------------------------------
# Keys cover both Firebase (kebab-case) and Supabase (snake_case) codes.
# Anything not listed becomes PROVIDER_ERROR with the provider's message.

PROVIDER_ERROR_MAP: dict[str, tuple[AuthErrorCode, str]] = {
    "user-not-found": (
        AuthErrorCode.ACCOUNT_NOT_FOUND,
        "No user found for that email.",
    ),
    "user_not_found": (
        AuthErrorCode.ACCOUNT_NOT_FOUND,
        "No user found for that email.",
    ),
    "wrong-password": (
        AuthErrorCode.INVALID_CREDENTIAL,
        "Wrong password provided.",
    ),
    "invalid-credential": (
        AuthErrorCode.INVALID_CREDENTIAL,
        "Incorrect email or password.",
    ),
    "invalid_credentials": (
        AuthErrorCode.INVALID_CREDENTIAL,
        "Incorrect email or password.",
    ),
    "invalid_grant": (
        AuthErrorCode.INVALID_CREDENTIAL,
        "Incorrect email or password.",
    ),
    "email-already-in-use": (
        AuthErrorCode.EMAIL_ALREADY_IN_USE,
        "An account with this email already exists. Try signing in.",
    ),
    "user_already_exists": (
        AuthErrorCode.EMAIL_ALREADY_IN_USE,
        "An account with this email already exists. Try signing in.",
    ),
    "email_exists": (
        AuthErrorCode.EMAIL_ALREADY_IN_USE,
        "An account with this email already exists. Try signing in.",
    ),
    "invalid-verification-code": (
        AuthErrorCode.INVALID_CODE,
        "Invalid code. Please check the SMS and try again.",
    ),
    "session-expired": (
        AuthErrorCode.CODE_EXPIRED,
        "The code has expired. Please try again.",
    ),
    "otp_expired": (
        AuthErrorCode.CODE_EXPIRED,
        "The code has expired or is invalid. Please try again.",
    ),
    "invalid-verification-id": (
        AuthErrorCode.VERIFICATION_EXPIRED,
        "This verification is no longer valid. Request a new code.",
    ),
}


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationResult(BaseModel):
    """Result of a single client-side field validation check."""

    is_valid: bool
    error_message: Optional[str] = None

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Phone verification outcome
# ---------------------------------------------------------------------------

class PhoneCodeOutcome(BaseModel):
    """The single tagged outcome of a phone verification request.

    Replaces the provider's four independent callbacks (completed,
    failed, code sent, auto-retrieval timeout) with one value the
    session flow can match exhaustively.

    Attributes
    ----------
    kind:
        Which of the four outcomes occurred.
    handle:
        The verification handle; required for ``CODE_SENT`` and
        ``TIMEOUT``.
    principal:
        The signed-in identity; required for ``AUTO_VERIFIED``.
    error_code:
        Provider error code for ``FAILED``.
    message:
        Provider message for ``FAILED``.
    """

    kind: PhoneOutcomeKind
    handle: Optional[VerificationHandle] = None
    principal: Optional[Principal] = None
    error_code: Optional[str] = None
    message: Optional[str] = None

    @model_validator(mode="after")
    def _check_payload(self) -> "PhoneCodeOutcome":
        if self.kind == PhoneOutcomeKind.AUTO_VERIFIED and self.principal is None:
            raise ValueError("AUTO_VERIFIED outcome requires a principal")
        if (
            self.kind in (PhoneOutcomeKind.CODE_SENT, PhoneOutcomeKind.TIMEOUT)
            and self.handle is None
        ):
            raise ValueError(f"{self.kind} outcome requires a handle")
        return self

    @classmethod
    def code_sent(cls, handle: VerificationHandle) -> "PhoneCodeOutcome":
        return cls(kind=PhoneOutcomeKind.CODE_SENT, handle=handle)

    @classmethod
    def auto_verified(cls, principal: Principal) -> "PhoneCodeOutcome":
        return cls(kind=PhoneOutcomeKind.AUTO_VERIFIED, principal=principal)

    @classmethod
    def timeout(cls, handle: VerificationHandle) -> "PhoneCodeOutcome":
        return cls(kind=PhoneOutcomeKind.TIMEOUT, handle=handle)

    @classmethod
    def failed(
        cls,
        message: str,
        error_code: Optional[str] = None,
    ) -> "PhoneCodeOutcome":
        return cls(kind=PhoneOutcomeKind.FAILED, error_code=error_code, message=message)


# ---------------------------------------------------------------------------
# Unified auth response
# ---------------------------------------------------------------------------

class AuthResult(BaseModel):
    """Unified response for every session flow operation.

    Attributes
    ----------
    success:
        ``True`` when the operation completed without error.
    state:
        Session state after the operation settled.
    principal:
        The authenticated identity, when there is one.
    handle:
        The live phone verification handle, when there is one.
    error_code:
        Structured error category (``None`` on success).
    error_message:
        Human-readable error description (``None`` on success).
    warning:
        Non-fatal problem on an otherwise successful operation, e.g. a
        profile write that failed after the account was created.
    info_message:
        Confirmation text for the UI (e.g. "code sent").
    """

    success: bool
    state: Optional[SessionState] = None
    principal: Optional[Principal] = None
    handle: Optional[VerificationHandle] = None
    error_code: Optional[AuthErrorCode] = None
    error_message: Optional[str] = None
    warning: Optional[str] = None
    info_message: Optional[str] = None

    model_config = {"from_attributes": True}
