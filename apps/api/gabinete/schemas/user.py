"""Pydantic schemas for team members."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from gabinete.db.enums import Role, UserStatus


class UserCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    role: Role = Role.STAFF
    password: str | None = Field(None, min_length=8, max_length=128)
    username: str | None = Field(None, min_length=3, max_length=100)
    phone: str | None = Field(None, max_length=30)
    sectors: list[UUID] = Field(default_factory=list)


class UserUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=255)
    username: str | None = Field(None, min_length=3, max_length=100)
    phone: str | None = Field(None, max_length=30)
    role: Role | None = None
    sectors: list[UUID] | None = None


class UserStatusUpdate(BaseModel):
    status: UserStatus


class PasswordSet(BaseModel):
    password: str = Field(..., min_length=8, max_length=128)


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    username: str | None
    phone: str | None
    role: str
    status: str
    avatar_url: str | None
    sectors: list[str]
    created_at: datetime
