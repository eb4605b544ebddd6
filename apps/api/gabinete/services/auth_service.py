"""Sign-in: credential checks and session tokens.

Failures carry provider-style error codes that map to user-facing messages.
They are reported to the application log, never to the audit trail.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gabinete.core.security import create_session_token, verify_password
from gabinete.db.models import User
from gabinete.services.audit_service import AuditLog
from gabinete.utils.normalization import normalize_email

logger = logging.getLogger(__name__)

AUTH_ERROR_MESSAGES = {
    "user-not-found": "No account found for this email or username.",
    "wrong-password": "Incorrect password.",
    "invalid-credential": "Invalid credentials. Check your email and password.",
    "user-disabled": "This account is disabled. Contact the office administrator.",
}


class AuthError(Exception):
    """Sign-in failure with a stable error code."""

    def __init__(self, code: str):
        self.code = code
        self.message = AUTH_ERROR_MESSAGES.get(code, AUTH_ERROR_MESSAGES["invalid-credential"])
        super().__init__(self.message)


def resolve_login_email(db: Session, identifier: str) -> str | None:
    """Accept an email or a username; usernames resolve to their email."""
    identifier = (identifier or "").strip()
    if not identifier:
        return None
    if "@" in identifier:
        return normalize_email(identifier)
    return db.scalar(
        select(User.email).where(func.lower(User.username) == identifier.lower())
    )


def authenticate(db: Session, audit: AuditLog, identifier: str, password: str) -> User:
    """
    Verify credentials and record the LOGIN.

    Raises:
        AuthError: with code user-not-found, wrong-password,
            invalid-credential or user-disabled
    """
    try:
        if not identifier or not password:
            raise AuthError("invalid-credential")

        email = resolve_login_email(db, identifier)
        user = (
            db.scalar(select(User).where(func.lower(User.email) == email)) if email else None
        )
        if user is None:
            raise AuthError("user-not-found")
        if not user.password_hash:
            raise AuthError("invalid-credential")
        if not verify_password(password, user.password_hash):
            raise AuthError("wrong-password")
        if not user.is_active:
            raise AuthError("user-disabled")
    except AuthError as e:
        logger.info("Login failed", extra={"code": e.code})
        raise

    audit.log_login(user)
    return user


def issue_session_token(user: User) -> str:
    return create_session_token(user.id, user.role, user.token_version)
