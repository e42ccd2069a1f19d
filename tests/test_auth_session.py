"""Tests for the session state holder."""

from datetime import datetime, timedelta, timezone

from sessionflow.auth import SessionManager
from sessionflow.models.enums import SessionState
from sessionflow.models.principal import Principal, VerificationHandle


def _handle() -> VerificationHandle:
    return VerificationHandle(verification_id="vid-1", phone="+15551234567")


class TestSessionManager:
    def test_starts_anonymous(self):
        session = SessionManager()

        assert session.state == SessionState.ANONYMOUS
        assert session.current_principal is None
        assert session.handle is None
        assert not session.is_authenticated

    def test_authenticate_consumes_handle(self):
        session = SessionManager()
        session.set_pending(_handle())

        session.authenticate(Principal(id="uid-1"))

        assert session.state == SessionState.AUTHENTICATED
        assert session.handle is None
        assert session.is_authenticated

    def test_settle_failure_keeps_handle(self):
        session = SessionManager()
        session.set_pending(_handle())
        session.begin(SessionState.VERIFYING)

        assert session.settle_failure(keep_handle=True) == SessionState.CODE_PENDING
        assert session.handle is not None

    def test_settle_failure_keeps_principal(self):
        session = SessionManager()
        session.authenticate(Principal(id="uid-1"))
        session.begin(SessionState.AUTHENTICATING)

        assert session.settle_failure() == SessionState.AUTHENTICATED
        assert session.current_principal.id == "uid-1"

    def test_settle_failure_without_principal(self):
        session = SessionManager()
        session.set_pending(_handle())
        session.begin(SessionState.VERIFYING)

        assert session.settle_failure() == SessionState.ANONYMOUS
        assert session.handle is None

    def test_clear_bumps_epoch(self):
        session = SessionManager()
        started = session.begin(SessionState.AUTHENTICATING)

        session.clear()

        with session.guard(started) as current:
            assert not current
        with session.guard(session.epoch) as current:
            assert current
        assert session.state == SessionState.ANONYMOUS

    def test_settle_transient_from_verifying_keeps_handle(self):
        session = SessionManager()
        session.set_pending(_handle())
        session.begin(SessionState.VERIFYING)

        assert session.settle_transient() == SessionState.CODE_PENDING
        assert session.handle is not None

    def test_settle_transient_while_code_requested(self):
        session = SessionManager()
        session.begin(SessionState.CODE_PENDING)

        assert session.settle_transient() == SessionState.ANONYMOUS

    def test_settle_transient_leaves_settled_states(self):
        session = SessionManager()
        session.set_pending(_handle())
        assert session.settle_transient() == SessionState.CODE_PENDING

        session.authenticate(Principal(id="uid-1"))
        assert session.settle_transient() == SessionState.AUTHENTICATED
        assert session.is_authenticated

    def test_replace_handle_keeps_state(self):
        session = SessionManager()
        session.set_pending(_handle())
        newer = VerificationHandle(verification_id="vid-2", phone="+15551234567")

        session.replace_handle(newer)

        assert session.state == SessionState.CODE_PENDING
        assert session.handle.verification_id == "vid-2"


class TestVerificationHandle:
    def test_age(self):
        issued = datetime(2026, 1, 1, tzinfo=timezone.utc)
        handle = VerificationHandle(verification_id="vid-1", phone="+1555", issued_at=issued)

        assert handle.age_seconds(issued + timedelta(seconds=90)) == 90
