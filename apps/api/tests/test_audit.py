"""Tests for the audit log: value helpers, writes, reads."""

from datetime import date
from uuid import uuid4

import pytest
from httpx import AsyncClient

from gabinete.db.enums import DemandStatus, LogAction, LogModule, Role
from gabinete.services import audit_service
from gabinete.services.audit_service import AuditLog, compute_changes, strip_absent

from conftest import FailingAuditLog, auth_for, make_user


# =============================================================================
# Unit Tests (no DB required)
# =============================================================================

def test_strip_absent_drops_none_recursively():
    value = {"a": 1, "b": None, "c": {"d": None, "e": [1, None, 2]}}
    assert strip_absent(value) == {"a": 1, "c": {"e": [1, 2]}}


def test_strip_absent_coerces_enums_dates_and_uuids():
    entity_id = uuid4()
    result = strip_absent(
        {"status": DemandStatus.OPEN, "day": date(2024, 5, 1), "id": entity_id}
    )
    assert result == {"status": "OPEN", "day": "2024-05-01", "id": str(entity_id)}


def test_compute_changes_only_reports_differences():
    before = {"name": "Maria", "mobile_phone": "11999999999"}
    after = {"name": "Maria Silva", "mobile_phone": "11999999999"}
    assert compute_changes(before, after) == [
        {"field": "name", "old_value": "Maria", "new_value": "Maria Silva"}
    ]


def test_compute_changes_nested_fields_are_dotted():
    before = {"address": {"city": "SAO PAULO", "state": "SP"}}
    after = {"address": {"city": "CAMPINAS", "state": "SP"}}
    assert compute_changes(before, after) == [
        {"field": "address.city", "old_value": "SAO PAULO", "new_value": "CAMPINAS"}
    ]


def test_compute_changes_treats_enum_and_value_as_equal():
    assert compute_changes({"status": "OPEN"}, {"status": DemandStatus.OPEN}) == []


# =============================================================================
# Writes / Reads
# =============================================================================

def test_log_persists_actor_snapshot(db, audit: AuditLog, staff_user):
    entry = audit.log(LogAction.CREATE, LogModule.CONSTITUENT, uuid4(), staff_user)
    assert entry is not None
    original_name = staff_user.name

    staff_user.name = "Renamed Later"
    db.commit()

    stored = audit.get_all_logs()[0]
    assert stored.actor["name"] == original_name
    assert stored.actor["user_id"] == str(staff_user.id)
    assert stored.actor["role"] == Role.STAFF.value


def test_log_omits_absent_values(audit: AuditLog, staff_user):
    entry = audit.log(
        LogAction.UPDATE,
        LogModule.DEMAND,
        uuid4(),
        staff_user,
        meta={"reason": None, "count": 2},
    )
    assert entry.meta == {"count": 2, "user_agent": "pytest"}
    assert entry.changes is None


def test_log_failure_returns_none_without_raising(db, staff_user):
    failing = FailingAuditLog(db)
    assert failing.log(LogAction.CREATE, LogModule.CONSTITUENT, uuid4(), staff_user) is None
    assert AuditLog(db).get_all_logs() == []


def test_reads_are_newest_first_and_bounded(audit: AuditLog, staff_user, monkeypatch):
    entity_id = uuid4()
    for _ in range(3):
        audit.log(LogAction.UPDATE, LogModule.CONSTITUENT, entity_id, staff_user)

    entries = audit.get_logs_by_entity(entity_id)
    assert len(entries) == 3
    assert entries[0].timestamp >= entries[-1].timestamp

    monkeypatch.setattr(audit_service.settings, "AUDIT_LOG_READ_LIMIT", 2, raising=False)
    assert len(audit.get_all_logs()) == 2


def test_get_logs_by_actor_and_module(db, audit: AuditLog, staff_user, admin_user):
    audit.log(LogAction.CREATE, LogModule.CONSTITUENT, uuid4(), staff_user)
    audit.log(LogAction.CREATE, LogModule.DEMAND, uuid4(), admin_user)

    by_actor = audit.get_logs_by_actor(admin_user.id)
    assert [e.module for e in by_actor] == [LogModule.DEMAND.value]

    by_module = audit.get_logs_by_module(LogModule.CONSTITUENT)
    assert [e.actor_user_id for e in by_module] == [str(staff_user.id)]


def test_get_logs_by_actor_is_not_crowded_out_by_other_users(
    db, audit: AuditLog, staff_user, admin_user, monkeypatch
):
    audit.log(LogAction.CREATE, LogModule.CONSTITUENT, uuid4(), staff_user)
    for _ in range(3):
        audit.log(LogAction.UPDATE, LogModule.DEMAND, uuid4(), admin_user)
    monkeypatch.setattr(audit_service.settings, "AUDIT_LOG_READ_LIMIT", 2, raising=False)

    assert [e.module for e in audit.get_all_logs()] == [LogModule.DEMAND.value] * 2
    by_actor = audit.get_logs_by_actor(staff_user.id)
    assert [e.actor_user_id for e in by_actor] == [str(staff_user.id)]
    assert len(audit.get_logs_by_actor(admin_user.id)) == 2
    assert len(audit.get_logs_by_actor(admin_user.id, limit=1)) == 1


# =============================================================================
# API
# =============================================================================

@pytest.mark.asyncio
async def test_audit_panel_requires_admin_or_parliamentary(authed_client: AsyncClient):
    response = await authed_client.get("/audit")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_audit_panel_lists_entries(admin_client: AsyncClient, audit, admin_user):
    audit.log(LogAction.CREATE, LogModule.CATEGORY, uuid4(), admin_user)
    response = await admin_client.get("/audit", params={"module": "CATEGORY"})
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["action"] == "CREATE"
    assert data[0]["actor"]["name"] == admin_user.name


@pytest.mark.asyncio
async def test_parliamentary_can_read_audit(db, client: AsyncClient):
    member = make_user(db, Role.PARLIAMENTARY)
    client.cookies.set(auth_for(member).cookie_name, auth_for(member).token)
    response = await client.get("/audit")
    assert response.status_code == 200
