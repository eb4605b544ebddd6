"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from gabinete.core.security import decode_session_token
from gabinete.db.enums import Role
from gabinete.db.models import User
from gabinete.db.session import SessionLocal
from gabinete.services.audit_service import AuditLog
from gabinete.services.lifecycle_service import EntityLifecycle
from gabinete.services.timeline_service import Timeline


# Cookie and header names
COOKIE_NAME = "gabinete_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"
AUDIT_INCOMPLETE_HEADER = "X-Audit-Incomplete"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Get authenticated user from session cookie.

    Validates:
    - Session cookie exists
    - JWT is valid and not expired
    - User exists and is active
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
        HTTPException 403: Unknown role
    """
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.get(User, _parse_uuid(payload.get("sub")))
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    # Token version check (revocation support)
    if user.token_version != payload.get("token_version"):
        raise HTTPException(status_code=401, detail="Session revoked")

    # Validate role is a known enum value - return 403 not 500
    if not Role.has_value(user.role):
        raise HTTPException(
            status_code=403,
            detail=f"Unknown role '{user.role}'. Contact administrator.",
        )
    return user


def _parse_uuid(value) -> UUID:
    try:
        return UUID(str(value))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid session")


def require_roles(allowed_roles):
    """
    Dependency factory for role-based authorization.

    Uses enum values (not strings) to prevent drift.

    Usage:
        @router.get("/quarantine", dependencies=[Depends(require_roles([Role.ADMIN]))])
    """
    def dependency(user: User = Depends(get_current_user)) -> User:
        if Role(user.role) not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{user.role}' not authorized for this action",
            )
        return user
    return dependency


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )


# =============================================================================
# Service components (one per request)
# =============================================================================

def get_audit_log(request: Request, db: Session = Depends(get_db)) -> AuditLog:
    user_agent = request.headers.get("user-agent", "")
    return AuditLog(db, user_agent=user_agent[:500] or None)


def get_timeline(
    db: Session = Depends(get_db), audit: AuditLog = Depends(get_audit_log)
) -> Timeline:
    return Timeline(db, audit)


def get_lifecycle(
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
    timeline: Timeline = Depends(get_timeline),
) -> EntityLifecycle:
    return EntityLifecycle(db, audit, timeline)


def mark_audit_result(response: Response, audit_complete: bool) -> None:
    """Flag responses whose entity was saved but whose audit entry was not."""
    if not audit_complete:
        response.headers[AUDIT_INCOMPLETE_HEADER] = "true"
