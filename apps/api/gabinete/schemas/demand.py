"""Pydantic schemas for demands (protocols) and their timeline."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gabinete.db.enums import (
    ContactChannel,
    ContactDirection,
    DemandPriority,
    DemandStatus,
)


# =============================================================================
# Create / Update
# =============================================================================

class DemandCreate(BaseModel):
    """Schema for opening a demand."""
    model_config = ConfigDict(use_enum_values=True)

    constituent_id: UUID
    title: str = Field(..., min_length=5, max_length=150)
    description: str = Field(..., min_length=10, max_length=10000)
    category_id: UUID
    priority: DemandPriority = DemandPriority.MEDIUM
    assigned_to_user_id: UUID | None = None
    deadline: date | None = None


class DemandUpdate(BaseModel):
    """
    Raw field patch.

    Status, transfer, external forwarding, protocol and deletion have
    dedicated routes; any other field is rejected.
    """
    model_config = ConfigDict(use_enum_values=True, extra="forbid")

    title: str | None = Field(None, min_length=5, max_length=150)
    description: str | None = Field(None, min_length=10, max_length=10000)
    priority: DemandPriority | None = None
    deadline: date | None = None

    @model_validator(mode="after")
    def required_fields_not_null(self) -> "DemandUpdate":
        nulls = sorted(
            field
            for field in ("title", "description", "priority")
            if field in self.model_fields_set and getattr(self, field) is None
        )
        if nulls:
            raise ValueError(f"Fields cannot be null: {', '.join(nulls)}")
        return self


class DemandStatusUpdate(BaseModel):
    status: DemandStatus
    reason: str | None = Field(None, max_length=500)


class DemandExternalUpdate(BaseModel):
    external_sector: str = Field(..., min_length=1, max_length=255)
    protocol_external: str | None = Field(None, max_length=100)
    protocol_date: date | None = None
    external_link: str | None = Field(None, max_length=500)


class DemandTransfer(BaseModel):
    assigned_to_user_id: UUID
    category_id: UUID | None = None


class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=5000)


class ContactCreate(BaseModel):
    channel: ContactChannel
    direction: ContactDirection = ContactDirection.OUTBOUND
    notes: str | None = Field(None, max_length=2000)


class TimelineEdit(BaseModel):
    description: str = Field(..., min_length=1, max_length=5000)

    @field_validator("description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Description cannot be blank")
        return v.strip()


# =============================================================================
# Read / Response
# =============================================================================

class AttachmentRead(BaseModel):
    id: str
    name: str
    type: str
    size: int
    url: str
    created_at: str


class DemandRead(BaseModel):
    """Full demand details."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    protocol: str
    constituent_id: UUID
    category_id: UUID | None
    assigned_to_user_id: UUID | None
    title: str
    description: str
    priority: str
    status: str
    deadline: date | None
    attachments: list[AttachmentRead]

    external_sector: str | None
    protocol_external: str | None
    protocol_date: date | None
    external_link: str | None

    last_action_label: str | None
    last_user_name: str | None

    is_pending_deletion: bool
    deletion_reason: str | None
    deleted_at: datetime | None
    deleted_by: UUID | None

    created_by: UUID | None
    updated_by: UUID | None
    created_at: datetime
    updated_at: datetime


class TimelineEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    parent_id: UUID
    sequence: int
    user_id: UUID | None
    user_name: str
    type: str
    description: str
    metadata: dict = Field(default_factory=dict, validation_alias="event_metadata")
    created_at: datetime


class CategoryCount(BaseModel):
    category_id: UUID | None
    name: str
    count: int


class TeamProductivity(BaseModel):
    user_name: str
    resolved_count: int


class DemandStats(BaseModel):
    total_constituents: int
    open_demands: int
    waiting_demands: int
    finished_demands: int
    demands_by_category: list[CategoryCount]
    team_productivity: list[TeamProductivity]
    birthdays_today: int
    active_neighborhoods: int
