"""Unit tests for auth/sessions.py -- SessionManager login, TOTP upgrade and logout.

Covers:
- login() success; wrong password and unknown user fail identically
- new sessions never carry the second factor
- upgrade_with_second_factor(): success, wrong/malformed codes, missing secret
- a failed upgrade leaves the session unchanged
- a logout racing an upgrade is not undone
- identity masking for accounts without a secret
- logout() destroys the session; unknown ids are ignored
"""

from unittest.mock import patch

import pytest

from auth import totp
from auth.accounts import register_admin, register_user
from auth.models import Role
from auth.session_store import MemorySessionStore
from auth.sessions import SessionManager
from auth.store import UserStore
from core.errors import InvalidCredentials, InvalidSecondFactor, Unauthenticated

SECRET = "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"
NOW = 1_700_000_015.0


@pytest.fixture
def users():
    store = UserStore("sqlite:///:memory:")
    register_user(store, "reza", "password123")
    register_user(store, "admin_sara", "admin123", role=Role.admin, totp_secret=SECRET)
    register_user(store, "admin_nokey", "admin123", role=Role.admin)
    yield store
    store.close()


@pytest.fixture
def manager(users):
    clock = lambda: NOW  # noqa: E731
    return SessionManager(users, MemorySessionStore(3600, 1800, clock=clock), clock=clock)


def _code(offset: float = 0) -> str:
    return totp.current_code(totp.decode_secret(SECRET), for_time=NOW + offset)


class TestLogin:
    def test_success(self, manager):
        session = manager.login("reza", "password123")
        identity = manager.current_identity(session.session_id)
        assert identity.username == "reza"
        assert identity.role == "user"
        assert identity.second_factor_capable is False
        assert identity.second_factor_satisfied is False

    def test_admin_session_starts_without_second_factor(self, manager):
        session = manager.login("admin_sara", "admin123")
        identity = manager.current_identity(session.session_id)
        assert identity.second_factor_capable is True
        assert identity.second_factor_satisfied is False

    def test_wrong_password_and_unknown_user_look_the_same(self, manager):
        with pytest.raises(InvalidCredentials) as wrong:
            manager.login("reza", "nope")
        with pytest.raises(InvalidCredentials) as unknown:
            manager.login("nobody", "nope")
        assert str(wrong.value) == str(unknown.value)

    def test_unknown_user_still_derives_a_key(self, manager):
        with patch("auth.sessions.passwords.burn_verification", return_value=False) as burn:
            with pytest.raises(InvalidCredentials):
                manager.login("nobody", "nope")
        burn.assert_called_once_with("nope")

    def test_each_login_gets_a_fresh_session(self, manager):
        a = manager.login("reza", "password123")
        b = manager.login("reza", "password123")
        assert a.session_id != b.session_id


class TestSecondFactor:
    def test_upgrade_sets_flag(self, manager):
        session = manager.login("admin_sara", "admin123")
        manager.upgrade_with_second_factor(session.session_id, _code())
        assert manager.current_identity(session.session_id).second_factor_satisfied is True

    def test_previous_step_accepted(self, manager):
        session = manager.login("admin_sara", "admin123")
        manager.upgrade_with_second_factor(session.session_id, _code(-30))
        assert manager.current_identity(session.session_id).second_factor_satisfied is True

    @pytest.mark.parametrize("code", ["12345", "1234567", "abcdef", "", None])
    def test_malformed_code_skips_verifier(self, manager, code):
        session = manager.login("admin_sara", "admin123")
        with patch("auth.sessions.totp.verify") as verify:
            with pytest.raises(InvalidSecondFactor):
                manager.upgrade_with_second_factor(session.session_id, code)
        verify.assert_not_called()

    def test_wrong_code_leaves_session_unchanged(self, manager):
        session = manager.login("admin_sara", "admin123")
        wrong = _code(-300)
        with pytest.raises(InvalidSecondFactor):
            manager.upgrade_with_second_factor(session.session_id, wrong)
        assert manager.current_identity(session.session_id).second_factor_satisfied is False

    def test_admin_without_secret_never_upgrades(self, manager):
        session = manager.login("admin_nokey", "admin123")
        for code in ("000000", "123456", _code()):
            with pytest.raises(InvalidSecondFactor):
                manager.upgrade_with_second_factor(session.session_id, code)
        identity = manager.current_identity(session.session_id)
        assert identity.second_factor_capable is False
        assert identity.second_factor_satisfied is False

    def test_requires_a_session(self, manager):
        with pytest.raises(Unauthenticated):
            manager.upgrade_with_second_factor("no-such-session", _code())
        with pytest.raises(Unauthenticated):
            manager.upgrade_with_second_factor(None, _code())

    def test_logout_during_upgrade_stays_logged_out(self, manager):
        session = manager.login("admin_sara", "admin123")

        def logout_then_accept(*args, **kwargs):
            manager.logout(session.session_id)
            return True

        with patch("auth.sessions.totp.verify", side_effect=logout_then_accept):
            with pytest.raises(Unauthenticated):
                manager.upgrade_with_second_factor(session.session_id, _code())
        assert manager.resolve(session.session_id) is None

    def test_fresh_login_drops_second_factor(self, manager):
        first = manager.login("admin_sara", "admin123")
        manager.upgrade_with_second_factor(first.session_id, _code())
        second = manager.login("admin_sara", "admin123")
        assert manager.current_identity(second.session_id).second_factor_satisfied is False


class TestLogout:
    def test_logout_destroys_session(self, manager):
        session = manager.login("reza", "password123")
        manager.logout(session.session_id)
        assert manager.resolve(session.session_id) is None
        with pytest.raises(Unauthenticated):
            manager.current_identity(session.session_id)

    def test_logout_unknown_is_noop(self, manager):
        manager.logout("never-existed")
        manager.logout(None)


def test_register_admin_generates_unique_secrets(users):
    a = register_admin(users, "admin_one", "pw-one")
    b = register_admin(users, "admin_two", "pw-two")
    assert a.totp_secret and b.totp_secret
    assert a.totp_secret != b.totp_secret
    assert users.get_by_username("admin_one").second_factor_capable
