"""Pydantic schemas for authentication."""

from pydantic import BaseModel, Field

from gabinete.schemas.user import UserRead


class LoginRequest(BaseModel):
    """Email or username plus password."""
    identifier: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=255)


class LoginResponse(BaseModel):
    user: UserRead


class AuthErrorResponse(BaseModel):
    code: str
    message: str
