"""
Session Flow Controller.

Single orchestrator for the authentication session: registration,
email/password sign-in, phone one-time codes, password reset, sign-out
and session restore.  It owns the state machine::

    ANONYMOUS --register--> REGISTERING --> AUTHENTICATED | ANONYMOUS
    ANONYMOUS --sign_in--> AUTHENTICATING --> AUTHENTICATED | ANONYMOUS
    ANONYMOUS --request_phone_code--> CODE_PENDING
        --> CODE_PENDING (code sent) | AUTHENTICATED (auto) | ANONYMOUS
    CODE_PENDING --submit_phone_code--> VERIFYING
        --> AUTHENTICATED | CODE_PENDING (handle retained)
    any --sign_out--> ANONYMOUS

UI shells stay thin form handlers: they gather input, call one method
(usually through :meth:`SessionFlowController.run_in_background`) and
render the returned ``AuthResult``.  Expected failures never raise.
"""

from __future__ import annotations

import re
import threading
from contextlib import contextmanager
from typing import Callable, Generator, Optional, TypeVar

from sessionflow.auth import SessionManager
from sessionflow.config import AppConfig
from sessionflow.logger import StructuredLogger
from sessionflow.models.auth_models import (
    PROVIDER_ERROR_MAP,
    AuthErrorCode,
    AuthResult,
    PhoneCodeOutcome,
    ValidationResult,
)
from sessionflow.models.enums import PhoneOutcomeKind, SessionState
from sessionflow.models.principal import Principal, VerificationHandle
from sessionflow.models.profile import ProfileResult
from sessionflow.providers.base import IdentityProvider, IdentityProviderError
from sessionflow.services.profile_service import ProfileService
from sessionflow.utils.audit import log_audit_event

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# local@domain.tld: no whitespace, exactly one "@", a dot inside the domain.
_EMAIL_RE: re.Pattern[str] = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# C0 controls, DEL and C1 controls.
_CONTROL_CHAR_RE: re.Pattern[str] = re.compile(r"[\x00-\x1f\x7f-\x9f]")

_NETWORK_MESSAGE: str = "Cannot reach the server. Check your internet connection."
_UNKNOWN_MESSAGE: str = "An error occurred. Please try again."
_RESET_MESSAGE: str = (
    "If this email is registered, you will receive a password reset link."
)


class SessionFlowController:
    """Authentication state machine for one UI context.

    Parameters
    ----------
    provider:
        Identity provider (accounts, credentials, phone codes).
    profiles:
        Profile service used for the post-registration write and the
        landing-screen lookup.
    session:
        Injectable session holder.
    config:
        Application configuration (credential policy, handle lifetime).
    logger:
        Structured JSON logger.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        profiles: ProfileService,
        session: SessionManager,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        self._provider: IdentityProvider = provider
        self._profiles: ProfileService = profiles
        self._session: SessionManager = session
        self._config: AppConfig = config
        self._logger: StructuredLogger = logger

        # Guards register / sign_in / phone code / restore: one at a time.
        self._flight_lock: threading.Lock = threading.Lock()
        self._disposed: threading.Event = threading.Event()

    # ==================================================================
    # Reads
    # ==================================================================

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def pending_handle(self) -> Optional[VerificationHandle]:
        return self._session.handle

    @property
    def is_disposed(self) -> bool:
        return self._disposed.is_set()

    def current_principal(self) -> Optional[Principal]:
        """Last principal reported by the provider; no side effects."""
        return self._session.current_principal

    # ==================================================================
    # Validation helpers
    # ==================================================================

    @staticmethod
    def validate_email(email: str) -> ValidationResult:
        """Accept only ``local@domain.tld`` shaped addresses."""
        if not email or not email.strip():
            return ValidationResult(
                is_valid=False,
                error_message="Please enter your email",
            )
        if not _EMAIL_RE.match(email.strip()):
            return ValidationResult(
                is_valid=False,
                error_message="Please enter a valid email address",
            )
        return ValidationResult(is_valid=True)

    def validate_password(self, password: str) -> ValidationResult:
        if not password:
            return ValidationResult(
                is_valid=False,
                error_message="Please enter your password",
            )
        min_length = self._config.MIN_PASSWORD_LENGTH
        if len(password) < min_length:
            return ValidationResult(
                is_valid=False,
                error_message=f"Password must be at least {min_length} characters long",
            )
        return ValidationResult(is_valid=True)

    @staticmethod
    def validate_username(username: str) -> ValidationResult:
        """Reject blank usernames and control characters (log injection)."""
        stripped = (username or "").strip()
        if not stripped:
            return ValidationResult(
                is_valid=False,
                error_message="Please enter a username",
            )
        if _CONTROL_CHAR_RE.search(stripped):
            return ValidationResult(
                is_valid=False,
                error_message="Username contains invalid characters.",
            )
        return ValidationResult(is_valid=True)

    @staticmethod
    def validate_phone(phone_number: str) -> ValidationResult:
        if not phone_number or not phone_number.strip():
            return ValidationResult(
                is_valid=False,
                error_message="Please enter your phone number",
            )
        return ValidationResult(is_valid=True)

    @staticmethod
    def normalize_email(email: str) -> str:
        """Normalise an email address: strip whitespace and lowercase."""
        return email.strip().lower()

    # ==================================================================
    # Registration
    # ==================================================================

    def register(
        self,
        email: str,
        password: str,
        username: str,
        confirm_password: Optional[str] = None,
    ) -> AuthResult:
        """Create an account, then save its profile best-effort.

        ``confirm_password`` is checked only when the form supplies one.
        A profile write failure leaves the account signed in and is
        reported through ``AuthResult.warning``.
        """
        if self.is_disposed:
            return self._cancelled()

        for check in (
            self.validate_email(email),
            self.validate_username(username),
            self.validate_password(password),
        ):
            if not check.is_valid:
                return self._invalid(check.error_message)
        if confirm_password is not None and confirm_password != password:
            return self._invalid("Passwords do not match")

        email = self.normalize_email(email)
        username = username.strip()

        with self._single_flight() as acquired:
            if not acquired:
                return self._in_progress()

            epoch = self._session.begin(SessionState.REGISTERING)
            try:
                principal = self._provider.create_account(email, password)
            except Exception as exc:
                code, message = self._classify_error(exc, "REGISTER_FAILED")
                return self._settle_failure(epoch, code, message)

            prior = self._commit_principal(epoch, principal)
            if prior is None:
                return self._cancelled()

            warning = self._profiles.create_profile(principal, email, username)

            log_audit_event(
                self._logger,
                action="REGISTER",
                principal_id=principal.id,
                from_state=prior,
                to_state=SessionState.AUTHENTICATED,
                details={"profile_saved": warning is None},
            )
            return AuthResult(
                success=True,
                state=SessionState.AUTHENTICATED,
                principal=principal,
                warning=warning,
                info_message="Account created successfully!",
            )

    # ==================================================================
    # Email / password sign-in
    # ==================================================================

    def sign_in(self, email: str, password: str) -> AuthResult:
        """Authenticate with email and password."""
        if self.is_disposed:
            return self._cancelled()

        for check in (self.validate_email(email), self.validate_password(password)):
            if not check.is_valid:
                return self._invalid(check.error_message)

        email = self.normalize_email(email)

        with self._single_flight() as acquired:
            if not acquired:
                return self._in_progress()

            epoch = self._session.begin(SessionState.AUTHENTICATING)
            try:
                principal = self._provider.sign_in(email, password)
            except Exception as exc:
                code, message = self._classify_error(exc, "SIGN_IN_FAILED")
                if (
                    code == AuthErrorCode.ACCOUNT_NOT_FOUND
                    and self._config.MASK_ACCOUNT_NOT_FOUND
                ):
                    code, message = PROVIDER_ERROR_MAP["invalid-credential"]
                return self._settle_failure(epoch, code, message)

            prior = self._commit_principal(epoch, principal)
            if prior is None:
                return self._cancelled()

            log_audit_event(
                self._logger,
                action="SIGN_IN",
                principal_id=principal.id,
                from_state=prior,
                to_state=SessionState.AUTHENTICATED,
            )
            return AuthResult(
                success=True,
                state=SessionState.AUTHENTICATED,
                principal=principal,
                info_message="Login successful!",
            )

    # ==================================================================
    # Phone one-time codes
    # ==================================================================

    def request_phone_code(self, phone_number: str) -> AuthResult:
        """Ask the provider to send a code to *phone_number*.

        On ``CODE_SENT`` the returned ``AuthResult.handle`` is the one to
        pass to :meth:`submit_phone_code`.  A platform that verifies the
        number silently signs the user in straight away.
        """
        if self.is_disposed:
            return self._cancelled()

        check = self.validate_phone(phone_number)
        if not check.is_valid:
            return self._invalid(check.error_message)

        phone_number = phone_number.strip()

        with self._single_flight() as acquired:
            if not acquired:
                return self._in_progress()

            epoch = self._session.begin(SessionState.CODE_PENDING)
            try:
                outcome = self._provider.send_phone_code(phone_number)
            except Exception as exc:
                _, message = self._classify_error(exc, "PHONE_CODE_FAILED")
                return self._settle_failure(
                    epoch, AuthErrorCode.PHONE_VERIFICATION_FAILED, message,
                )
            return self._apply_phone_outcome(epoch, outcome)

    def handle_phone_event(self, outcome: PhoneCodeOutcome) -> AuthResult:
        """Feed a provider-pushed phone outcome into the state machine.

        Used for events that arrive after :meth:`request_phone_code`
        returned, such as the auto-retrieval timeout (which swaps in a
        fresh handle) or a late silent verification.

        An event only applies while a phone request is live: the state
        is ``CODE_PENDING``, or ``VERIFYING`` for a timeout.  Anything
        else (the user signed out, signed in another way, or never asked
        for a code) is discarded with ``OPERATION_CANCELLED``; a stray
        timeout is a no-op.
        """
        if self.is_disposed:
            return self._cancelled()
        return self._apply_phone_outcome(self._session.epoch, outcome, pushed=True)

    def submit_phone_code(
        self,
        handle: Optional[VerificationHandle],
        code: str,
    ) -> AuthResult:
        """Exchange the live handle and the user's code for a session.

        A wrong or expired code keeps the handle so the user can retry
        without requesting another SMS.  Only a dead handle (provider
        ``VERIFICATION_EXPIRED`` or older than ``PHONE_HANDLE_TTL_S``)
        is discarded.  Passing ``handle=None`` means "the live handle".
        """
        if self.is_disposed:
            return self._cancelled()

        with self._single_flight() as acquired:
            if not acquired:
                return self._in_progress()

            live = self._session.handle
            if live is None or (
                handle is not None and handle.verification_id != live.verification_id
            ):
                return AuthResult(
                    success=False,
                    state=self._session.state,
                    error_code=AuthErrorCode.NO_PENDING_VERIFICATION,
                    error_message="Please get a verification code first.",
                )

            if not code or not code.strip():
                return AuthResult(
                    success=False,
                    state=self._session.state,
                    handle=live,
                    error_code=AuthErrorCode.VALIDATION_ERROR,
                    error_message="Please enter the code",
                )

            ttl = self._config.PHONE_HANDLE_TTL_S
            if ttl and live.age_seconds() > ttl:
                self._logger.info(
                    "Verification handle expired after %ds.", ttl,
                    extra={"event": "PHONE_HANDLE_EXPIRED", "phone": live.phone},
                )
                return self._settle_failure(
                    self._session.epoch,
                    AuthErrorCode.VERIFICATION_EXPIRED,
                    PROVIDER_ERROR_MAP["invalid-verification-id"][1],
                )

            epoch = self._session.begin(SessionState.VERIFYING)
            try:
                principal = self._provider.verify_phone_code(live, code.strip())
            except Exception as exc:
                error_code, message = self._classify_error(exc, "PHONE_VERIFY_FAILED")
                return self._settle_failure(
                    epoch,
                    error_code,
                    message,
                    keep_handle=error_code != AuthErrorCode.VERIFICATION_EXPIRED,
                )

            prior = self._commit_principal(epoch, principal)
            if prior is None:
                return self._cancelled()

            log_audit_event(
                self._logger,
                action="PHONE_SIGN_IN",
                principal_id=principal.id,
                from_state=prior,
                to_state=SessionState.AUTHENTICATED,
            )
            return AuthResult(
                success=True,
                state=SessionState.AUTHENTICATED,
                principal=principal,
                info_message="Login successful!",
            )

    def _apply_phone_outcome(
        self,
        epoch: int,
        outcome: PhoneCodeOutcome,
        pushed: bool = False,
    ) -> AuthResult:
        with self._session.guard(epoch) as current:
            if not current:
                return self._cancelled()
            prior = self._session.state

            if pushed and not self._accepts_pushed(prior, outcome.kind):
                self._logger.info(
                    "Ignoring %s phone event in state %s.", outcome.kind, prior,
                    extra={"event": "PHONE_EVENT_DISCARDED"},
                )
                if outcome.kind == PhoneOutcomeKind.TIMEOUT:
                    return AuthResult(success=True, state=prior)
                return self._cancelled()

            if outcome.kind == PhoneOutcomeKind.AUTO_VERIFIED:
                principal = outcome.principal
                self._session.authenticate(principal)
                if pushed:
                    # request_phone_code may still be waiting on the provider.
                    self._session.invalidate()
                log_audit_event(
                    self._logger,
                    action="PHONE_AUTO_VERIFIED",
                    principal_id=principal.id,
                    from_state=prior,
                    to_state=SessionState.AUTHENTICATED,
                )
                return AuthResult(
                    success=True,
                    state=SessionState.AUTHENTICATED,
                    principal=principal,
                    info_message="Login successful!",
                )

            if outcome.kind == PhoneOutcomeKind.CODE_SENT:
                self._session.set_pending(outcome.handle)
                self._logger.info(
                    "Verification code sent.",
                    extra={"event": "PHONE_CODE_SENT", "phone": outcome.handle.phone},
                )
                return AuthResult(
                    success=True,
                    state=SessionState.CODE_PENDING,
                    handle=outcome.handle,
                    info_message="A verification code has been sent to your phone.",
                )

            if outcome.kind == PhoneOutcomeKind.TIMEOUT:
                if prior == SessionState.VERIFYING:
                    self._session.replace_handle(outcome.handle)
                else:
                    self._session.set_pending(outcome.handle)
                self._logger.debug("Auto-retrieval timed out; handle replaced.")
                return AuthResult(
                    success=True,
                    state=self._session.state,
                    handle=outcome.handle,
                )

            # PhoneOutcomeKind.FAILED
            self._logger.warning(
                "Phone verification failed: %s", outcome.message,
                extra={
                    "event": "PHONE_CODE_FAILED",
                    "error_code": outcome.error_code or "unknown",
                },
            )
            state = self._session.settle_failure(keep_handle=False)
            return AuthResult(
                success=False,
                state=state,
                principal=self._session.current_principal,
                error_code=AuthErrorCode.PHONE_VERIFICATION_FAILED,
                error_message=outcome.message or "Phone verification failed.",
            )

    # ==================================================================
    # Password reset
    # ==================================================================

    def request_password_reset(self, email: str) -> AuthResult:
        """Send a password-reset email.

        An unknown account is reported exactly like a known one, so the
        form cannot be used to probe which emails are registered.
        """
        if self.is_disposed:
            return self._cancelled()

        check = self.validate_email(email)
        if not check.is_valid:
            return self._invalid(check.error_message)

        email = self.normalize_email(email)

        try:
            self._provider.send_password_reset(email)
        except Exception as exc:
            code, message = self._classify_error(exc, "PASSWORD_RESET_FAILED")
            if code != AuthErrorCode.ACCOUNT_NOT_FOUND:
                return AuthResult(
                    success=False,
                    state=self._session.state,
                    error_code=code,
                    error_message=message,
                )
        else:
            self._logger.info(
                "Password reset requested.",
                extra={"event": "PASSWORD_RESET_REQUESTED", "email": email},
            )

        return AuthResult(
            success=True,
            state=self._session.state,
            info_message=_RESET_MESSAGE,
        )

    # ==================================================================
    # Session lifecycle
    # ==================================================================

    def sign_out(self) -> None:
        """End the session locally, whatever the provider says.

        Idempotent.  Work still in flight is discarded when it returns.
        """
        prior = self._session.state
        principal = self._session.current_principal

        try:
            self._provider.sign_out()
        except Exception as exc:
            self._logger.warning(
                "Provider sign_out failed: %s", exc,
                extra={"event": "SIGN_OUT_PROVIDER_FAILED"},
            )

        self._session.clear()

        log_audit_event(
            self._logger,
            action="SIGN_OUT",
            principal_id=principal.id if principal else None,
            from_state=prior,
            to_state=SessionState.ANONYMOUS,
        )

    def restore_session(self) -> AuthResult:
        """Adopt the provider's signed-in principal, if any (splash screen)."""
        if self.is_disposed:
            return self._cancelled()

        with self._single_flight() as acquired:
            if not acquired:
                return self._in_progress()

            epoch = self._session.epoch
            try:
                principal = self._provider.current_principal()
            except Exception as exc:
                code, message = self._classify_error(exc, "RESTORE_FAILED")
                return AuthResult(
                    success=False,
                    state=self._session.state,
                    error_code=code,
                    error_message=message,
                )

            if principal is None:
                return self._drop_local_session(epoch)

            prior = self._commit_principal(epoch, principal)
            if prior is None:
                return self._cancelled()
            log_audit_event(
                self._logger,
                action="SESSION_RESTORED",
                principal_id=principal.id,
                from_state=prior,
                to_state=SessionState.AUTHENTICATED,
            )
            return AuthResult(
                success=True,
                state=SessionState.AUTHENTICATED,
                principal=principal,
            )

    def _drop_local_session(self, epoch: int) -> AuthResult:
        """The provider has no session: forget any principal held locally."""
        with self._session.guard(epoch) as current:
            if not current:
                return self._cancelled()
            stale = self._session.current_principal
            if stale is None:
                return AuthResult(success=True, state=self._session.state)
            prior = self._session.state
            self._session.clear()

        log_audit_event(
            self._logger,
            action="SESSION_EXPIRED",
            principal_id=stale.id,
            from_state=prior,
            to_state=SessionState.ANONYMOUS,
        )
        return AuthResult(success=True, state=SessionState.ANONYMOUS)

    def fetch_profile(self, principal_id: str) -> ProfileResult:
        """Profile lookup; ``NOT_FOUND`` is an expected outcome."""
        return self._profiles.fetch_profile(principal_id)

    def display_name(self) -> str:
        """Greeting name for the current principal, with fallback."""
        return self._profiles.display_name(self._session.current_principal)

    # ==================================================================
    # Background execution and disposal
    # ==================================================================

    def run_in_background(
        self,
        operation: Callable[..., T],
        *args: object,
        on_complete: Optional[Callable[[T], None]] = None,
        **kwargs: object,
    ) -> threading.Thread:
        """Run *operation* on a daemon thread.

        ``on_complete(result)`` is invoked on the worker thread unless
        the controller was disposed while the operation ran.  UI shells
        marshal it to their main loop themselves.
        """
        def worker() -> None:
            try:
                result = operation(*args, **kwargs)
            except Exception:
                self._logger.error(
                    "Background operation %s failed.",
                    getattr(operation, "__name__", repr(operation)),
                    exc_info=True,
                )
                return
            if on_complete is not None and not self.is_disposed:
                on_complete(result)

        thread = threading.Thread(
            target=worker,
            name=f"sessionflow-{getattr(operation, '__name__', 'op')}",
            daemon=True,
        )
        thread.start()
        return thread

    def dispose(self) -> None:
        """Detach from the owning UI context.

        Outcomes of work still in flight are dropped, completion
        callbacks are suppressed and later calls return
        ``OPERATION_CANCELLED``.  A shared session caught mid-operation
        is settled as if that operation had failed.
        """
        self._disposed.set()
        self._session.invalidate()
        state = self._session.settle_transient()
        self._logger.debug("Session flow controller disposed in state %s.", state)

    # ==================================================================
    # Internals
    # ==================================================================

    @contextmanager
    def _single_flight(self) -> Generator[bool, None, None]:
        acquired = self._flight_lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                self._flight_lock.release()

    @staticmethod
    def _accepts_pushed(state: SessionState, kind: PhoneOutcomeKind) -> bool:
        """Whether a provider-pushed phone event applies in *state*.

        While a code is being verified only a handle swap is accepted;
        the running submission settles everything else.
        """
        if state == SessionState.CODE_PENDING:
            return True
        return state == SessionState.VERIFYING and kind == PhoneOutcomeKind.TIMEOUT

    def _commit_principal(
        self, epoch: int, principal: Principal,
    ) -> Optional[SessionState]:
        """Sign *principal* in unless the epoch moved on.

        Returns the state before the commit, or ``None`` when the
        outcome was discarded.
        """
        with self._session.guard(epoch) as current:
            if not current:
                self._logger.info(
                    "Discarding late sign-in for %s.", principal.id,
                    extra={"event": "STALE_RESULT_DISCARDED"},
                )
                return None
            prior = self._session.state
            self._session.authenticate(principal)
            return prior

    def _settle_failure(
        self,
        epoch: int,
        code: AuthErrorCode,
        message: str,
        keep_handle: bool = False,
    ) -> AuthResult:
        with self._session.guard(epoch) as current:
            if not current:
                return self._cancelled()
            state = self._session.settle_failure(keep_handle=keep_handle)
            return AuthResult(
                success=False,
                state=state,
                principal=self._session.current_principal,
                handle=self._session.handle,
                error_code=code,
                error_message=message,
            )

    def _classify_error(
        self, exc: Exception, event: str,
    ) -> tuple[AuthErrorCode, str]:
        """Map a provider or network exception to the error taxonomy."""
        if isinstance(exc, (ConnectionError, TimeoutError)):
            self._logger.warning(
                "Network error: %s", exc,
                extra={"event": event, "error_code": "network"},
            )
            return AuthErrorCode.NETWORK_ERROR, _NETWORK_MESSAGE

        if isinstance(exc, IdentityProviderError):
            code_key = exc.code.lower()
            mapped = PROVIDER_ERROR_MAP.get(code_key)
            self._logger.warning(
                "Auth error (%s): %s", code_key, exc.message,
                extra={"event": event, "error_code": code_key},
            )
            if mapped is not None:
                return mapped
            return AuthErrorCode.PROVIDER_ERROR, exc.message or _UNKNOWN_MESSAGE

        # Unexpected exception type: look for a known code in the text.
        error_str = str(exc).lower()
        for code_key, mapped in PROVIDER_ERROR_MAP.items():
            if code_key in error_str:
                self._logger.warning(
                    "Auth error (%s): %s", code_key, exc,
                    extra={"event": event, "error_code": code_key},
                )
                return mapped

        self._logger.warning(
            "Unknown auth error: %s", exc,
            extra={"event": event, "error_code": "unknown"},
            exc_info=True,
        )
        return AuthErrorCode.PROVIDER_ERROR, str(exc) or _UNKNOWN_MESSAGE

    def _invalid(self, message: Optional[str]) -> AuthResult:
        return AuthResult(
            success=False,
            state=self._session.state,
            principal=self._session.current_principal,
            handle=self._session.handle,
            error_code=AuthErrorCode.VALIDATION_ERROR,
            error_message=message,
        )

    def _in_progress(self) -> AuthResult:
        return AuthResult(
            success=False,
            state=self._session.state,
            error_code=AuthErrorCode.OPERATION_IN_PROGRESS,
            error_message="Please wait for the current request to finish.",
        )

    def _cancelled(self) -> AuthResult:
        return AuthResult(
            success=False,
            state=self._session.state,
            error_code=AuthErrorCode.OPERATION_CANCELLED,
            error_message="The request was cancelled.",
        )
