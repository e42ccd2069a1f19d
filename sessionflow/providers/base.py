"""
Collaborator Contracts.

Provider-agnostic protocols for the two external services the session
flow depends on.  Implementations raise the exceptions defined here;
the session flow maps them to typed results.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from sessionflow.models.auth_models import PhoneCodeOutcome
from sessionflow.models.principal import Principal, VerificationHandle
from sessionflow.models.profile import ProfileRecord


class IdentityProviderError(Exception):
    """Failure reported by the identity provider.

    ``code`` is the provider's own error code (e.g. ``user-not-found``
    or ``user_already_exists``); it is looked up in
    ``PROVIDER_ERROR_MAP``.
    """

    def __init__(self, code: str, message: str = "") -> None:
        self.code: str = code
        self.message: str = message or code
        super().__init__(self.message)


class ProfileStoreError(Exception):
    """Failure reading from or writing to the profile store."""

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        self.message: str = message
        self.original_error: Optional[Exception] = original_error
        super().__init__(self.message)


@runtime_checkable
class IdentityProvider(Protocol):
    """Accounts, credentials and phone codes."""

    def create_account(self, email: str, password: str) -> Principal: ...

    def sign_in(self, email: str, password: str) -> Principal: ...

    def send_phone_code(self, phone_number: str) -> PhoneCodeOutcome: ...

    def verify_phone_code(self, handle: VerificationHandle, code: str) -> Principal: ...

    def send_password_reset(self, email: str) -> None: ...

    def sign_out(self) -> None: ...

    def current_principal(self) -> Optional[Principal]: ...


@runtime_checkable
class ProfileStore(Protocol):
    """Document store of profile records keyed by principal id."""

    def put(self, principal_id: str, record: ProfileRecord) -> None: ...

    def query_by_principal_id(self, principal_id: str) -> Optional[ProfileRecord]: ...
