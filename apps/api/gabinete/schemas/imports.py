"""Pydantic schemas for Smart Import."""

from pydantic import BaseModel, Field


class ImportPreview(BaseModel):
    headers: list[str]
    mapping: dict[str, str]
    total_rows: int
    sample_rows: list[dict[str, str]] = Field(default_factory=list)


class ImportResultRead(BaseModel):
    created: int
    skipped: int
    provisioned_users: list[str]


class LegacyReconcileRead(BaseModel):
    updated: int
    provisioned_users: list[str]
