"""Imports router - Smart Import of constituents and legacy tag reconciliation."""

import json
from contextlib import nullcontext

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile

from gabinete.core.deps import (
    get_lifecycle,
    mark_audit_result,
    require_csrf_header,
    require_roles,
)
from gabinete.db.enums import ROLES_CAN_IMPORT, ROLES_CAN_MANAGE_TEAM
from gabinete.db.models import User
from gabinete.schemas.imports import ImportPreview, ImportResultRead, LegacyReconcileRead
from gabinete.services import import_service
from gabinete.services.geo_service import GeoClient
from gabinete.services.lifecycle_service import EntityLifecycle

router = APIRouter(prefix="/imports", tags=["Imports"])

PREVIEW_SAMPLE_ROWS = 5
MAX_IMPORT_BYTES = 5 * 1024 * 1024


def _read_upload(file: UploadFile) -> bytes:
    content = file.file.read(MAX_IMPORT_BYTES + 1)
    if len(content) > MAX_IMPORT_BYTES:
        raise HTTPException(status_code=413, detail="Import file too large")
    try:
        content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Import file must be UTF-8 encoded CSV")
    return content


@router.post(
    "/constituents/preview",
    response_model=ImportPreview,
    dependencies=[Depends(require_csrf_header)],
)
def preview_constituent_import(
    file: UploadFile = File(...),
    user: User = Depends(require_roles(list(ROLES_CAN_IMPORT))),
):
    """Parse the CSV and propose a column mapping; nothing is written."""
    headers, rows = import_service.parse_csv_file(_read_upload(file))
    if not headers:
        raise HTTPException(status_code=400, detail="The file appears to be empty")
    return ImportPreview(
        headers=headers,
        mapping=import_service.auto_map_columns(headers),
        total_rows=len(rows),
        sample_rows=rows[:PREVIEW_SAMPLE_ROWS],
    )


@router.post(
    "/constituents",
    response_model=ImportResultRead,
    dependencies=[Depends(require_csrf_header)],
)
def import_constituents(
    response: Response,
    file: UploadFile = File(...),
    mapping: str | None = Form(None, description="JSON object {field: header}"),
    default_city: str = Form(""),
    default_state: str = Form(""),
    lookup_zip_codes: bool = Form(False),
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(require_roles(list(ROLES_CAN_IMPORT))),
):
    """
    Create constituents from a CSV in one batch.

    Rows that fail are skipped; the rest still commit. Runs to completion
    (zip lookups are throttled), so large files take a while.
    """
    column_map = None
    if mapping:
        try:
            column_map = json.loads(mapping)
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="mapping must be a JSON object")
        if not isinstance(column_map, dict):
            raise HTTPException(status_code=400, detail="mapping must be a JSON object")

    content = _read_upload(file)
    with GeoClient() if lookup_zip_codes else nullcontext() as geo_client:
        result = import_service.import_constituents_csv(
            lifecycle,
            user,
            content,
            mapping=column_map,
            default_city=default_city,
            default_state=default_state,
            geo_client=geo_client,
        )
    mark_audit_result(response, result.audit_complete)
    return ImportResultRead(
        created=result.created,
        skipped=result.skipped,
        provisioned_users=[u.name for u in result.provisioned_users],
    )


@router.post(
    "/reconcile-tags",
    response_model=LegacyReconcileRead,
    dependencies=[Depends(require_csrf_header)],
)
def reconcile_tags(
    lifecycle: EntityLifecycle = Depends(get_lifecycle),
    user: User = Depends(require_roles(list(ROLES_CAN_MANAGE_TEAM))),
):
    """Move responsible-name signals out of legacy tag lists."""
    result = import_service.reconcile_legacy_tags(lifecycle, user)
    return LegacyReconcileRead(
        updated=result.updated,
        provisioned_users=[u.name for u in result.provisioned_users],
    )
