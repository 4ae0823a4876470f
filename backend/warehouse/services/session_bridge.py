# Overview: Session bridge; turns identity-provider sessions into application users
# and decides what they may reach.

"""
Session Bridge

- restore(token): bearer token -> UserProfile (or None)
- login / logout
- check_access(): the role gate, with distinct outcomes for "no user",
  "wrong role" and "must set password first"
- password setup, invites and reset-by-email

An identity that authenticates but has no profile row is NOT an
application user: login fails and no session is created.
"""

from __future__ import annotations

import enum
import logging

from .gateway import GatewayError, RemoteDataGateway
from .records import DEFAULT_ROLE_PERMISSIONS, ROLE_STAFF, ROLES, UserProfile
from .store import StoreError, WarehouseStore
from . import identity_service, session_service
from .identity_service import IdentityError, PasswordValidationError
from ..time_utils import utcnow
from ..validation import ValidationError


logger = logging.getLogger(__name__)

PASSWORD_SETUP_PATH = "/api/auth/set-password"


class AccessOutcome(str, enum.Enum):
    GRANTED = "granted"
    NOT_AUTHENTICATED = "not_authenticated"
    ACCESS_DENIED = "access_denied"
    PASSWORD_SETUP_REQUIRED = "password_setup_required"


class AuthenticationError(Exception):
    """Login could not produce an application user."""


class PasswordSetupError(Exception):
    """The new password was rejected."""


class SessionBridge:
    def __init__(self, gateway: RemoteDataGateway | None = None, store: WarehouseStore | None = None):
        self._gateway = gateway or RemoteDataGateway()
        self.store = store
        self.current_user: UserProfile | None = None
        self.session_id: int | None = None
        self._token: str | None = None

    # ------------------------------------------------------------ user state

    def _set_user(self, profile: UserProfile | None) -> None:
        self.current_user = profile
        if self.store is not None:
            self.store.current_user = profile

    def _clear(self) -> None:
        self._token = None
        self.session_id = None
        self._set_user(None)

    def attach_store(self, store: WarehouseStore) -> None:
        self.store = store
        store.current_user = self.current_user

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    # ------------------------------------------------------------ sessions

    def restore(self, token: str) -> UserProfile | None:
        """Resolve a bearer token to its profile; clears the user if it no longer resolves."""
        context = session_service.validate_session(token) if token else None
        if context is None:
            self._clear()
            return None

        row = self._gateway.fetch_profile_by_user_id(context.identity.id)
        if row is None:
            self._clear()
            return None

        self._token = token
        self.session_id = context.session.id
        self._set_user(UserProfile.from_row(row))
        return self.current_user

    def login(
        self,
        email: str,
        password: str,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> tuple[UserProfile, str]:
        """
        Sign in and resolve the profile.

        Returns (profile, bearer_token). Raises AuthenticationError on bad
        credentials or when the identity has no profile; current_user is
        left unset in both cases.
        """
        self._clear()
        if not email or not password:
            raise AuthenticationError("Email and password are required")

        identity = identity_service.sign_in_with_password(email, password)
        if identity is None:
            raise AuthenticationError("Invalid login credentials")

        try:
            row = self._gateway.fetch_profile_by_user_id(identity.id)
            if row is None:
                logger.warning("Login rejected: no profile for identity %s", identity.id)
                raise AuthenticationError("No user profile is provisioned for this account")
            row = self._gateway.update("profiles", row["id"], {"last_login": utcnow()})
        except GatewayError as exc:
            raise AuthenticationError(exc.message) from exc

        session, token = session_service.create_session(
            user_id=identity.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        self._token = token
        self.session_id = session.id
        self._set_user(UserProfile.from_row(row))
        logger.info("User %s logged in", self.current_user.username)
        return self.current_user, token

    def logout(self) -> int | None:
        """
        Revoke the current session and forget the user.

        Returns the ended session id so callers can drop per-session state.
        """
        session_id = self.session_id
        if self._token:
            session_service.revoke_session(self._token)
        self._clear()
        return session_id

    # ------------------------------------------------------------ role gate

    def check_access(self, allowed_roles=None, *, password_setup: bool = False) -> AccessOutcome:
        """
        Decide whether the current user may reach a guarded target.

        allowed_roles: iterable of role names; None means any current role.
        password_setup: True only for the password-setup flow itself, which
        users flagged must_set_password are always sent to.
        """
        user = self.current_user
        if user is None:
            return AccessOutcome.NOT_AUTHENTICATED
        if user.must_set_password and not password_setup:
            return AccessOutcome.PASSWORD_SETUP_REQUIRED
        roles = ROLES if allowed_roles is None else tuple(allowed_roles)
        if user.role not in roles:
            return AccessOutcome.ACCESS_DENIED
        return AccessOutcome.GRANTED

    # ------------------------------------------------------------ passwords

    def set_password(self, password: str, confirm: str) -> UserProfile:
        """Password-setup flow: replace the password and clear must_set_password."""
        user = self.current_user
        if user is None:
            raise AuthenticationError("Authentication required")
        if password != confirm:
            raise PasswordSetupError("Passwords do not match.")
        try:
            identity_service.update_password(user.user_id, password)
        except (PasswordValidationError, IdentityError) as exc:
            raise PasswordSetupError(str(exc)) from exc

        if user.must_set_password:
            if self.store is not None and self.store.get_user(user.id) is not None:
                profile = self.store.update_user(user.id, {"must_set_password": False})
            else:
                profile = UserProfile.from_row(
                    self._gateway.update("profiles", user.id, {"must_set_password": False})
                )
            self._set_user(profile)
        return self.current_user

    def request_password_reset(self, email: str) -> str | None:
        return identity_service.request_password_reset(email)

    def confirm_password_reset(self, token: str, password: str) -> None:
        try:
            identity_service.confirm_password_reset(token, password)
        except (PasswordValidationError, IdentityError) as exc:
            raise PasswordSetupError(str(exc)) from exc

    # ------------------------------------------------------------ invites

    def invite_user(
        self,
        email: str,
        username: str,
        role: str = ROLE_STAFF,
        permissions=None,
    ) -> tuple[UserProfile, str]:
        """
        Create an identity with a temporary password and its profile.

        The profile is flagged must_set_password. Returns (profile,
        temporary_password); the password is handed to the invitee out of
        band. If the profile cannot be created the identity is removed again.
        """
        if self.store is None:
            raise RuntimeError("invite_user needs a store")
        if role not in ROLES:
            raise ValidationError(f"role must be one of: {', '.join(ROLES)}")

        temporary_password = identity_service.generate_temporary_password()
        identity = identity_service.sign_up(email, temporary_password)
        try:
            profile = self.store.add_user({
                "user_id": identity.id,
                "username": username,
                "email": identity.email,
                "role": role,
                "permissions": list(permissions) if permissions is not None else list(DEFAULT_ROLE_PERMISSIONS[role]),
                "must_set_password": True,
            })
        except (StoreError, ValidationError):
            identity_service.delete_identity(identity.id)
            raise
        return profile, temporary_password
