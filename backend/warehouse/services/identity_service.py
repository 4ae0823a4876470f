# Overview: Identity provider; credentials, sign-up (invites) and password resets.

"""
Identity Provider

Owns auth_identities and password_reset_tokens. Knows nothing about
roles or profiles: that mapping is the session bridge's job.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters
- Reset tokens are random, stored as SHA-256 hashes, single use, 1 hour TTL
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import AuthIdentity, PasswordResetToken
from ..time_utils import utcnow
from .session_service import hash_token


logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
RESET_TOKEN_TTL = timedelta(hours=1)


class PasswordValidationError(Exception):
    """Raised when a password doesn't meet requirements."""


class IdentityError(Exception):
    """Raised when an identity-provider operation cannot be completed."""


def validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
        )


def hash_password(password: str) -> str:
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def generate_temporary_password() -> str:
    """Throwaway password for invited users; they must replace it on first login."""
    return secrets.token_urlsafe(12) + "Aa1!"


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_identity(user_id: str) -> AuthIdentity | None:
    return db.session.get(AuthIdentity, user_id)


def get_identity_by_email(email: str) -> AuthIdentity | None:
    return db.session.query(AuthIdentity).filter_by(email=_normalize_email(email)).first()


def sign_up(email: str, password: str) -> AuthIdentity:
    """Create an identity. Raises IdentityError if the email is taken."""
    email = _normalize_email(email)
    if not email:
        raise IdentityError("Email is required")

    identity = AuthIdentity(email=email, password_hash=hash_password(password))
    db.session.add(identity)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise IdentityError(f"An account with email {email} already exists")

    logger.info("Identity created for %s", email)
    return identity


def sign_in_with_password(email: str, password: str) -> AuthIdentity | None:
    """Returns the identity if the credentials match, otherwise None."""
    identity = get_identity_by_email(email)
    if identity is None or not password:
        return None
    if not verify_password(password, identity.password_hash):
        return None

    identity.last_sign_in_at = utcnow()
    db.session.commit()
    return identity


def delete_identity(user_id: str) -> None:
    """Remove an identity that never got a profile (failed invite)."""
    identity = get_identity(user_id)
    if identity is not None:
        db.session.delete(identity)
        db.session.commit()


def update_password(user_id: str, new_password: str) -> AuthIdentity:
    identity = get_identity(user_id)
    if identity is None:
        raise IdentityError("Account not found")
    identity.password_hash = hash_password(new_password)
    db.session.commit()
    return identity


def request_password_reset(email: str) -> str | None:
    """
    Issue a reset token for `email`.

    Returns the plaintext token for delivery by email, or None when no
    account matches. Callers must not reveal which of the two happened.
    """
    identity = get_identity_by_email(email)
    if identity is None:
        logger.info("Password reset requested for unknown email")
        return None

    token = secrets.token_hex(32)
    db.session.add(PasswordResetToken(
        user_id=identity.id,
        token_hash=hash_token(token),
        expires_at=utcnow() + RESET_TOKEN_TTL,
    ))
    db.session.commit()
    logger.info("Password reset token issued for %s", identity.email)
    return token


def confirm_password_reset(token: str, new_password: str) -> AuthIdentity:
    record = db.session.query(PasswordResetToken).filter_by(token_hash=hash_token(token or "")).first()
    if record is None or record.used_at is not None or record.expires_at < utcnow():
        raise IdentityError("Reset link is invalid or has expired")

    identity = update_password(record.user_id, new_password)
    record.used_at = utcnow()
    db.session.commit()
    return identity
