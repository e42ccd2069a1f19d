from __future__ import annotations

import itertools
import threading
from typing import Callable, Optional

from sessionflow.models.auth_models import PhoneCodeOutcome
from sessionflow.models.principal import Principal, VerificationHandle
from sessionflow.models.profile import ProfileRecord
from sessionflow.providers.base import IdentityProviderError, ProfileStoreError


class FakeIdentityProvider:
    """In-memory identity provider.

    ``fail_with`` maps a method name to the exception it should raise.
    Setting ``gate`` makes the calls named in ``gated`` block until the
    event is set, with ``entered`` signalling that a call is waiting.
    """

    VALID_CODE = "123456"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self.accounts: dict[str, tuple[str, Principal]] = {}
        self.calls: list[str] = []
        self.fail_with: dict[str, Exception] = {}
        self.phone_outcome: Optional[Callable[[str], PhoneCodeOutcome]] = None
        self.dead_handles: set[str] = set()
        self.password_resets: list[str] = []
        self.signed_in: Optional[Principal] = None
        self.gate: Optional[threading.Event] = None
        self.gated: set[str] = set()
        self.entered = threading.Event()

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        if self.gate is not None and name in self.gated:
            self.entered.set()
            self.gate.wait(timeout=5)
        if name in self.fail_with:
            raise self.fail_with[name]

    def create_account(self, email: str, password: str) -> Principal:
        self._enter("create_account")
        with self._lock:
            if email in self.accounts:
                raise IdentityProviderError(
                    "email-already-in-use",
                    "The email address is already in use by another account.",
                )
            principal = Principal(id=f"uid-{next(self._ids)}", email=email)
            self.accounts[email] = (password, principal)
        self.signed_in = principal
        return principal

    def sign_in(self, email: str, password: str) -> Principal:
        self._enter("sign_in")
        account = self.accounts.get(email)
        if account is None:
            raise IdentityProviderError("user-not-found", "There is no user record.")
        if account[0] != password:
            raise IdentityProviderError("wrong-password", "The password is invalid.")
        self.signed_in = account[1]
        return account[1]

    def send_phone_code(self, phone_number: str) -> PhoneCodeOutcome:
        self._enter("send_phone_code")
        if self.phone_outcome is not None:
            return self.phone_outcome(phone_number)
        handle = VerificationHandle(
            verification_id=f"vid-{next(self._ids)}",
            phone=phone_number,
        )
        return PhoneCodeOutcome.code_sent(handle)

    def verify_phone_code(self, handle: VerificationHandle, code: str) -> Principal:
        self._enter("verify_phone_code")
        if handle.verification_id in self.dead_handles:
            raise IdentityProviderError("invalid-verification-id", "Verification expired.")
        if code != self.VALID_CODE:
            raise IdentityProviderError("invalid-verification-code", "Invalid code.")
        principal = Principal(id=f"phone-{handle.phone}", phone=handle.phone)
        self.signed_in = principal
        return principal

    def send_password_reset(self, email: str) -> None:
        self._enter("send_password_reset")
        if email not in self.accounts:
            raise IdentityProviderError("user-not-found", "There is no user record.")
        self.password_resets.append(email)

    def sign_out(self) -> None:
        self._enter("sign_out")
        self.signed_in = None

    def current_principal(self) -> Optional[Principal]:
        self._enter("current_principal")
        return self.signed_in


class FakeProfileStore:
    """Dict-backed profile store with switchable failures."""

    def __init__(self) -> None:
        self.records: dict[str, ProfileRecord] = {}
        self.fail_put: bool = False
        self.fail_query: bool = False

    def put(self, principal_id: str, record: ProfileRecord) -> None:
        if self.fail_put:
            raise ProfileStoreError("permission-denied")
        self.records[principal_id] = record

    def query_by_principal_id(self, principal_id: str) -> Optional[ProfileRecord]:
        if self.fail_query:
            raise ProfileStoreError("unavailable")
        return self.records.get(principal_id)
