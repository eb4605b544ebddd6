"""Pydantic schemas for constituents."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from gabinete.db.enums import Gender, LeadershipType
from gabinete.utils.normalization import digits_only, normalize_name


class Address(BaseModel):
    zip_code: str = Field("", max_length=9)
    street: str = Field("", max_length=255)
    number: str = Field("", max_length=20)
    complement: str = Field("", max_length=100)
    neighborhood: str = Field("", max_length=100)
    city: str = Field("", max_length=100)
    state: str = Field("", max_length=2)

    @field_validator("zip_code", mode="before")
    @classmethod
    def clean_zip(cls, v: str | None) -> str:
        return digits_only(v)

    @field_validator("state", mode="before")
    @classmethod
    def upper_state(cls, v: str | None) -> str:
        return (v or "").strip().upper()


class GeoPoint(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


def _clean_tags(tags: list[str] | None) -> list[str]:
    cleaned: list[str] = []
    for tag in tags or []:
        tag = " ".join(str(tag).split()).upper()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


NOT_NULL_UPDATE_FIELDS = (
    "name",
    "document",
    "mobile_phone",
    "address",
    "tags",
    "is_leadership",
    "responsible_user_id",
)


# =============================================================================
# Create / Update
# =============================================================================

class ConstituentCreate(BaseModel):
    """Schema for registering a constituent."""
    model_config = ConfigDict(use_enum_values=True)

    name: str = Field(..., min_length=3, max_length=100)
    document: str = Field("", max_length=20)
    mobile_phone: str = Field(..., min_length=10, max_length=15)
    email: EmailStr | None = None
    birth_date: date | None = None
    gender: Gender | None = None
    voter_title: str | None = Field(None, max_length=20)
    electoral_zone: str | None = Field(None, max_length=10)
    electoral_section: str | None = Field(None, max_length=10)
    address: Address = Field(default_factory=Address)
    tags: list[str] = Field(default_factory=list)
    is_leadership: bool = False
    leadership_type: LeadershipType | None = None
    notes: str | None = Field(None, max_length=5000)
    responsible_user_id: str = ""  # "" = office-general

    @field_validator("name", mode="before")
    @classmethod
    def clean_name(cls, v: str | None) -> str:
        return normalize_name(v) or ""

    @field_validator("document", "mobile_phone", mode="before")
    @classmethod
    def clean_digits(cls, v: str | None) -> str:
        return digits_only(v)

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, v: list[str] | None) -> list[str]:
        return _clean_tags(v)


class ConstituentUpdate(BaseModel):
    """Partial update; only fields sent are applied."""
    model_config = ConfigDict(use_enum_values=True)

    name: str | None = Field(None, min_length=3, max_length=100)
    document: str | None = Field(None, max_length=20)
    mobile_phone: str | None = Field(None, min_length=10, max_length=15)
    email: EmailStr | None = None
    birth_date: date | None = None
    gender: Gender | None = None
    voter_title: str | None = Field(None, max_length=20)
    electoral_zone: str | None = Field(None, max_length=10)
    electoral_section: str | None = Field(None, max_length=10)
    address: Address | None = None
    geo: GeoPoint | None = None
    tags: list[str] | None = None
    is_leadership: bool | None = None
    leadership_type: LeadershipType | None = None
    notes: str | None = Field(None, max_length=5000)
    responsible_user_id: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def clean_name(cls, v: str | None) -> str | None:
        return normalize_name(v) if v is not None else None

    @field_validator("document", "mobile_phone", mode="before")
    @classmethod
    def clean_digits(cls, v: str | None) -> str | None:
        return digits_only(v) if v is not None else None

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, v: list[str] | None) -> list[str] | None:
        return _clean_tags(v) if v is not None else None

    @model_validator(mode="after")
    def required_fields_not_null(self) -> "ConstituentUpdate":
        # Omit a field to leave it unchanged; null is only valid for optional data
        nulls = sorted(
            field
            for field in NOT_NULL_UPDATE_FIELDS
            if field in self.model_fields_set and getattr(self, field) is None
        )
        if nulls:
            raise ValueError(f"Fields cannot be null: {', '.join(nulls)}")
        return self


class DeletionRequest(BaseModel):
    """Reason is mandatory for sending a record to quarantine."""
    reason: str = Field(..., min_length=1, max_length=500)

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Reason cannot be blank")
        return v.strip()


# =============================================================================
# Read / Response
# =============================================================================

class ConstituentRead(BaseModel):
    """Full constituent details."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    document: str
    mobile_phone: str
    email: str | None
    birth_date: date | None
    gender: str | None
    voter_title: str | None
    electoral_zone: str | None
    electoral_section: str | None
    address: dict
    geo: dict | None
    tags: list[str]
    is_leadership: bool
    leadership_type: str | None
    notes: str | None
    responsible_user_id: str

    is_pending_deletion: bool
    deletion_reason: str | None
    deleted_at: datetime | None
    deleted_by: UUID | None

    created_by: UUID | None
    updated_by: UUID | None
    created_at: datetime
    updated_at: datetime
