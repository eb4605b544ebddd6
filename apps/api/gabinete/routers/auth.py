"""Auth router - sign in, sign out, current user."""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from gabinete.core.config import settings
from gabinete.core.deps import (
    COOKIE_NAME,
    get_audit_log,
    get_current_user,
    get_db,
    require_csrf_header,
)
from gabinete.core.rate_limit import limiter
from gabinete.db.models import User
from gabinete.schemas.auth import LoginRequest, LoginResponse
from gabinete.schemas.user import UserRead
from gabinete.services import auth_service
from gabinete.services.audit_service import AuditLog

router = APIRouter(tags=["Auth"])


@router.post("/login", response_model=LoginResponse, dependencies=[Depends(require_csrf_header)])
@limiter.limit(f"{settings.RATE_LIMIT_AUTH}/minute")
def login(
    request: Request,
    response: Response,
    data: LoginRequest,
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """
    Sign in with email or username.

    On failure returns 401 with ``{"code", "message"}``.
    """
    try:
        user = auth_service.authenticate(db, audit, data.identifier, data.password)
    except auth_service.AuthError as e:
        raise HTTPException(status_code=401, detail={"code": e.code, "message": e.message})

    response.set_cookie(
        key=COOKIE_NAME,
        value=auth_service.issue_session_token(user),
        max_age=settings.JWT_EXPIRES_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )
    return LoginResponse(user=UserRead.model_validate(user))


@router.post("/logout", dependencies=[Depends(require_csrf_header)])
def logout(response: Response, user: User = Depends(get_current_user)):
    """Clear session cookie."""
    response.delete_cookie(COOKIE_NAME, path="/")
    return {"status": "logged_out"}


@router.get("/me", response_model=UserRead)
def get_me(user: User = Depends(get_current_user)):
    return user
