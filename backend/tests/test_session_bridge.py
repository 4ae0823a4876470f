"""
Session bridge tests.

Verifies:
- Login resolves a profile; an identity without one is not a user
- The role gate separates "no user", "wrong role" and "must set password"
- Password setup clears the flag through the store
- Invites create identity + profile, and undo the identity on failure
"""

import pytest

from warehouse.models import AuthIdentity, SessionToken
from warehouse.services import identity_service
from warehouse.services.session_bridge import (
    AccessOutcome,
    AuthenticationError,
    PasswordSetupError,
    SessionBridge,
)
from warehouse.services.identity_service import IdentityError
from warehouse.validation import ValidationError

from conftest import DEFAULT_PASSWORD


# =============================================================================
# LOGIN / LOGOUT
# =============================================================================


class TestLogin:

    def test_login_resolves_profile(self, db_session, admin_profile):
        bridge = SessionBridge()
        profile, token = bridge.login("ADMIN@warehouse.test", DEFAULT_PASSWORD)

        assert profile.username == "admin"
        assert profile.role == "admin"
        assert profile.last_login is not None
        assert token
        assert bridge.is_authenticated
        assert db_session.query(SessionToken).count() == 1

    def test_wrong_password(self, db_session, admin_profile):
        bridge = SessionBridge()
        with pytest.raises(AuthenticationError):
            bridge.login("admin@warehouse.test", "not-the-password")
        assert bridge.current_user is None

    def test_identity_without_profile_cannot_login(self, db_session):
        identity_service.sign_up("ghost@warehouse.test", DEFAULT_PASSWORD)
        bridge = SessionBridge()

        with pytest.raises(AuthenticationError):
            bridge.login("ghost@warehouse.test", DEFAULT_PASSWORD)

        assert bridge.current_user is None
        assert db_session.query(SessionToken).count() == 0

    def test_restore_and_logout(self, db_session, staff_profile):
        _, token = SessionBridge().login("staff@warehouse.test", DEFAULT_PASSWORD)

        bridge = SessionBridge()
        assert bridge.restore(token).username == "staff"
        session_id = bridge.session_id

        assert bridge.logout() == session_id
        assert bridge.current_user is None
        assert SessionBridge().restore(token) is None

    def test_restore_after_profile_deleted(self, db_session, staff_profile):
        _, token = SessionBridge().login("staff@warehouse.test", DEFAULT_PASSWORD)
        db_session.delete(staff_profile)
        db_session.commit()

        assert SessionBridge().restore(token) is None


# =============================================================================
# ROLE GATE
# =============================================================================


class TestCheckAccess:

    def _bridge_for(self, email):
        bridge = SessionBridge()
        bridge.login(email, DEFAULT_PASSWORD)
        return bridge

    def test_no_user(self, db_session):
        assert SessionBridge().check_access(["admin"]) is AccessOutcome.NOT_AUTHENTICATED

    def test_staff_denied_admin_target(self, db_session, staff_profile):
        bridge = self._bridge_for("staff@warehouse.test")
        assert bridge.check_access(["admin"]) is AccessOutcome.ACCESS_DENIED
        assert bridge.check_access(["admin", "staff"]) is AccessOutcome.GRANTED

    def test_any_role_by_default(self, db_session, staff_profile):
        assert self._bridge_for("staff@warehouse.test").check_access() is AccessOutcome.GRANTED

    def test_unknown_role_denied_everywhere(self, db_session, create_account):
        create_account("legacy", "legacy@warehouse.test", role="manager")
        bridge = self._bridge_for("legacy@warehouse.test")
        assert bridge.check_access() is AccessOutcome.ACCESS_DENIED

    def test_password_setup_wins_over_role(self, db_session, create_account):
        create_account("newbie", "newbie@warehouse.test", role="admin", must_set_password=True)
        bridge = self._bridge_for("newbie@warehouse.test")

        assert bridge.check_access(["admin"]) is AccessOutcome.PASSWORD_SETUP_REQUIRED
        assert bridge.check_access(password_setup=True) is AccessOutcome.GRANTED


# =============================================================================
# PASSWORDS
# =============================================================================


class TestPasswords:

    def test_set_password_clears_flag(self, db_session, store, create_account):
        create_account("newbie", "newbie@warehouse.test", must_set_password=True)
        bridge = SessionBridge(store=store)
        bridge.login("newbie@warehouse.test", DEFAULT_PASSWORD)
        store.refresh_data()

        profile = bridge.set_password("BrandNew123", "BrandNew123")

        assert profile.must_set_password is False
        assert store.get_user(profile.id).must_set_password is False
        assert store.current_user.must_set_password is False
        assert identity_service.sign_in_with_password("newbie@warehouse.test", "BrandNew123")

    def test_mismatch_rejected(self, db_session, staff_profile):
        bridge = SessionBridge()
        bridge.login("staff@warehouse.test", DEFAULT_PASSWORD)
        with pytest.raises(PasswordSetupError, match="Passwords do not match."):
            bridge.set_password("BrandNew123", "BrandNew124")

    def test_short_password_rejected(self, db_session, staff_profile):
        bridge = SessionBridge()
        bridge.login("staff@warehouse.test", DEFAULT_PASSWORD)
        with pytest.raises(PasswordSetupError):
            bridge.set_password("short", "short")

    def test_reset_flow(self, db_session, staff_profile):
        bridge = SessionBridge()
        token = bridge.request_password_reset("staff@warehouse.test")
        assert token

        bridge.confirm_password_reset(token, "ResetPass99")
        assert identity_service.sign_in_with_password("staff@warehouse.test", "ResetPass99")

        with pytest.raises(PasswordSetupError):
            bridge.confirm_password_reset(token, "AnotherOne99")

    def test_reset_unknown_email(self, db_session):
        assert SessionBridge().request_password_reset("nobody@warehouse.test") is None


# =============================================================================
# INVITES
# =============================================================================


class TestInvites:

    def test_invite_creates_flagged_profile(self, db_session, store, admin_profile):
        bridge = SessionBridge(store=store)
        bridge.login("admin@warehouse.test", DEFAULT_PASSWORD)

        profile, temporary_password = bridge.invite_user("jane@warehouse.test", "jane")

        assert profile.must_set_password is True
        assert profile.role == "staff"
        assert profile.permissions == ("stock_receive", "stock_transfer")
        assert store.get_user(profile.id) == profile
        assert identity_service.sign_in_with_password("jane@warehouse.test", temporary_password)

    def test_duplicate_email(self, db_session, store, admin_profile):
        bridge = SessionBridge(store=store)
        with pytest.raises(IdentityError):
            bridge.invite_user("admin@warehouse.test", "again")

    def test_unknown_role(self, db_session, store):
        bridge = SessionBridge(store=store)
        with pytest.raises(ValidationError):
            bridge.invite_user("jane@warehouse.test", "jane", role="viewer")
        assert db_session.query(AuthIdentity).count() == 0

    def test_failed_profile_removes_identity(self, db_session, store):
        bridge = SessionBridge(store=store)
        with pytest.raises(ValidationError):
            bridge.invite_user("jane@warehouse.test", "x" * 100)
        assert db_session.query(AuthIdentity).count() == 0
