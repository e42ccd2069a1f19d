"""Tests for the Supabase Auth adapter."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from sessionflow.database import DatabaseManager
from sessionflow.models.enums import PhoneOutcomeKind
from sessionflow.models.principal import VerificationHandle
from sessionflow.providers.base import IdentityProvider, IdentityProviderError
from sessionflow.providers.supabase_identity import SupabaseIdentityProvider


class FakeAuthApiError(Exception):
    """Shaped like ``gotrue.errors.AuthApiError``."""

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


def _user(**fields):
    base = {"id": "uid-1", "email": None, "phone": None}
    base.update(fields)
    return SimpleNamespace(**base)


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def db(client, logger):
    manager = DatabaseManager(
        supabase_url="",
        supabase_key="",
        sqlite_path=":memory:",
        logger=logger,
        supabase_client=client,
    )
    yield manager
    manager.close()


@pytest.fixture
def identity(db, logger) -> SupabaseIdentityProvider:
    return SupabaseIdentityProvider(db=db, logger=logger)


class TestEmailPassword:
    def test_satisfies_provider_contract(self, identity):
        assert isinstance(identity, IdentityProvider)

    def test_sign_in_maps_user(self, identity, client):
        client.auth.sign_in_with_password.return_value = SimpleNamespace(
            user=_user(email="a@b.com")
        )

        principal = identity.sign_in("a@b.com", "secret1")

        assert principal.id == "uid-1"
        assert principal.email == "a@b.com"
        assert principal.phone is None
        client.auth.sign_in_with_password.assert_called_once_with(
            {"email": "a@b.com", "password": "secret1"}
        )

    def test_error_code_is_preserved(self, identity, client):
        client.auth.sign_in_with_password.side_effect = FakeAuthApiError(
            "Invalid login credentials", "invalid_credentials"
        )

        with pytest.raises(IdentityProviderError) as info:
            identity.sign_in("a@b.com", "wrong")

        assert info.value.code == "invalid_credentials"
        assert info.value.message == "Invalid login credentials"

    def test_error_without_code_is_unknown(self, identity, client):
        client.auth.sign_up.side_effect = ValueError("bad payload")

        with pytest.raises(IdentityProviderError) as info:
            identity.create_account("a@b.com", "secret1")

        assert info.value.code == "unknown"

    def test_network_errors_pass_through(self, identity, client):
        client.auth.sign_up.side_effect = ConnectionError("unreachable")

        with pytest.raises(ConnectionError):
            identity.create_account("a@b.com", "secret1")

    def test_sign_up_without_user(self, identity, client):
        client.auth.sign_up.return_value = SimpleNamespace(user=None)

        with pytest.raises(IdentityProviderError):
            identity.create_account("a@b.com", "secret1")

    def test_password_reset(self, identity, client):
        identity.send_password_reset("a@b.com")

        client.auth.reset_password_for_email.assert_called_once_with("a@b.com")

    def test_offline_is_a_connection_error(self, logger):
        offline = DatabaseManager(
            supabase_url="",
            supabase_key="",
            sqlite_path=":memory:",
            logger=logger,
        )
        identity = SupabaseIdentityProvider(db=offline, logger=logger)

        with pytest.raises(ConnectionError):
            identity.sign_in("a@b.com", "secret1")
        offline.close()


class TestPhone:
    def test_code_sent(self, identity, client):
        outcome = identity.send_phone_code("+15551234567")

        assert outcome.kind == PhoneOutcomeKind.CODE_SENT
        assert outcome.handle.phone == "+15551234567"
        assert outcome.handle.verification_id
        client.auth.sign_in_with_otp.assert_called_once_with({"phone": "+15551234567"})

    def test_handles_are_distinct(self, identity):
        first = identity.send_phone_code("+15551234567")
        second = identity.send_phone_code("+15551234567")

        assert first.handle.verification_id != second.handle.verification_id

    def test_rejection_is_a_failed_outcome(self, identity, client, log_stream):
        client.auth.sign_in_with_otp.side_effect = FakeAuthApiError(
            "Invalid phone number", "validation_failed"
        )

        outcome = identity.send_phone_code("+15551234567")

        assert outcome.kind == PhoneOutcomeKind.FAILED
        assert outcome.error_code == "validation_failed"
        assert "+15551234567" not in log_stream.getvalue()

    def test_network_error_on_send_is_raised(self, identity, client):
        client.auth.sign_in_with_otp.side_effect = TimeoutError()

        with pytest.raises(TimeoutError):
            identity.send_phone_code("+15551234567")

    def test_verify_uses_handle_phone(self, identity, client):
        client.auth.verify_otp.return_value = SimpleNamespace(
            user=_user(phone="+15551234567")
        )
        handle = VerificationHandle(verification_id="vid-1", phone="+15551234567")

        principal = identity.verify_phone_code(handle, "123456")

        assert principal.phone == "+15551234567"
        client.auth.verify_otp.assert_called_once_with(
            {"phone": "+15551234567", "token": "123456", "type": "sms"}
        )

    def test_expired_code(self, identity, client):
        client.auth.verify_otp.side_effect = FakeAuthApiError("Token has expired", "otp_expired")
        handle = VerificationHandle(verification_id="vid-1", phone="+15551234567")

        with pytest.raises(IdentityProviderError) as info:
            identity.verify_phone_code(handle, "000000")

        assert info.value.code == "otp_expired"


class TestSession:
    def test_current_principal(self, identity, client):
        client.auth.get_user.return_value = SimpleNamespace(user=_user(email="a@b.com"))

        assert identity.current_principal().id == "uid-1"

    def test_no_current_principal(self, identity, client):
        client.auth.get_user.return_value = None

        assert identity.current_principal() is None

    def test_sign_out(self, identity, client):
        identity.sign_out()

        client.auth.sign_out.assert_called_once_with()
