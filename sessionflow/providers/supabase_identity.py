"""
Supabase Identity Provider.

Implements the ``IdentityProvider`` contract on top of Supabase Auth:
email/password accounts, SMS one-time codes and password-reset mail.

Supabase correlates an SMS code with the phone number rather than with a
server-issued id, so the verification handle id is generated locally and
only serves to tie a code submission to the request that sent it.
"""

from __future__ import annotations

import uuid
from typing import Optional

from supabase import Client as SupabaseClient

from sessionflow.database import DatabaseManager
from sessionflow.logger import StructuredLogger
from sessionflow.models.auth_models import PhoneCodeOutcome
from sessionflow.models.principal import Principal, VerificationHandle
from sessionflow.providers.base import IdentityProviderError


def _to_principal(user: object) -> Principal:
    """Build a ``Principal`` from a Supabase ``User`` object."""
    return Principal(
        id=str(getattr(user, "id")),
        email=getattr(user, "email", None) or None,
        phone=getattr(user, "phone", None) or None,
    )


def _to_provider_error(exc: Exception) -> Exception:
    """Translate a Supabase exception into the provider contract.

    Connection failures pass through unchanged.  ``AuthApiError`` and
    friends carry a ``code`` attribute (``invalid_credentials``,
    ``user_already_exists``, ``otp_expired`` ...); older clients only
    expose it in the message text.
    """
    if isinstance(exc, (ConnectionError, TimeoutError, IdentityProviderError)):
        return exc
    code: Optional[str] = getattr(exc, "code", None)
    message: str = str(getattr(exc, "message", "") or exc)
    if not code:
        code = "unknown"
    return IdentityProviderError(code=str(code).lower(), message=message)


class SupabaseIdentityProvider:
    """Identity provider backed by ``supabase.auth``.

    Parameters
    ----------
    db:
        Database manager owning the (optional) Supabase client.
    logger:
        Structured JSON logger.
    """

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    @property
    def _client(self) -> SupabaseClient:
        try:
            return self._db.supabase
        except RuntimeError as exc:
            raise ConnectionError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Email / password
    # ------------------------------------------------------------------

    def create_account(self, email: str, password: str) -> Principal:
        try:
            response = self._client.auth.sign_up({
                "email": email,
                "password": password,
            })
        except Exception as exc:
            raise _to_provider_error(exc) from exc
        if response.user is None:
            raise IdentityProviderError(
                code="user_not_created",
                message="The account could not be created.",
            )
        return _to_principal(response.user)

    def sign_in(self, email: str, password: str) -> Principal:
        try:
            response = self._client.auth.sign_in_with_password({
                "email": email,
                "password": password,
            })
        except Exception as exc:
            raise _to_provider_error(exc) from exc
        if response.user is None:
            raise IdentityProviderError(code="invalid_credentials")
        return _to_principal(response.user)

    def send_password_reset(self, email: str) -> None:
        try:
            self._client.auth.reset_password_for_email(email)
        except Exception as exc:
            raise _to_provider_error(exc) from exc

    # ------------------------------------------------------------------
    # Phone one-time codes
    # ------------------------------------------------------------------

    def send_phone_code(self, phone_number: str) -> PhoneCodeOutcome:
        """Send an SMS code; never raises for provider-side rejection.

        Supabase has no silent auto-verification and no auto-retrieval
        timeout, so the outcome is either ``CODE_SENT`` or ``FAILED``.
        """
        try:
            self._client.auth.sign_in_with_otp({"phone": phone_number})
        except (ConnectionError, TimeoutError):
            raise
        except Exception as exc:
            error = _to_provider_error(exc)
            self._logger.warning(
                "Phone code request rejected: %s", error,
                extra={"event": "PHONE_CODE_FAILED", "phone": phone_number},
            )
            return PhoneCodeOutcome.failed(
                message=str(error),
                error_code=getattr(error, "code", None),
            )

        handle = VerificationHandle(
            verification_id=uuid.uuid4().hex,
            phone=phone_number,
        )
        return PhoneCodeOutcome.code_sent(handle)

    def verify_phone_code(self, handle: VerificationHandle, code: str) -> Principal:
        try:
            response = self._client.auth.verify_otp({
                "phone": handle.phone,
                "token": code,
                "type": "sms",
            })
        except Exception as exc:
            raise _to_provider_error(exc) from exc
        if response.user is None:
            raise IdentityProviderError(code="invalid-verification-code")
        return _to_principal(response.user)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def sign_out(self) -> None:
        try:
            self._client.auth.sign_out()
        except Exception as exc:
            raise _to_provider_error(exc) from exc

    def current_principal(self) -> Optional[Principal]:
        try:
            response = self._client.auth.get_user()
        except Exception as exc:
            raise _to_provider_error(exc) from exc
        if response is None or response.user is None:
            return None
        return _to_principal(response.user)
