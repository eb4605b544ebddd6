"""Tests for demand semantic actions."""

import io
from datetime import date

import pytest

from gabinete.db.enums import DemandStatus, EntityKind, LogAction, Role, TimelineEventType, UserStatus
from gabinete.db.models import Category
from gabinete.services import demand_service
from gabinete.services.demand_service import DemandLockedError
from gabinete.services.status_rules import StatusTransitionError

from conftest import constituent_data, make_user


# =============================================================================
# Status
# =============================================================================

def test_status_change_writes_timeline_and_audit(audit, timeline, lifecycle, staff_user, demand):
    result = demand_service.update_status(
        lifecycle, demand.id, staff_user, DemandStatus.IN_PROGRESS
    )

    assert result.entity.status == "IN_PROGRESS"
    event = timeline.list_for_demand(demand.id)[0]
    assert event.type == TimelineEventType.STATUS_CHANGE.value
    assert event.event_metadata == {"old": "OPEN", "new": "IN_PROGRESS"}
    assert result.entity.last_action_label == "Status changed from OPEN to IN_PROGRESS"

    entry = audit.get_logs_by_entity(demand.id)[0]
    assert entry.action == LogAction.STATUS_CHANGE.value
    assert entry.changes == [{"field": "status", "old_value": "OPEN", "new_value": "IN_PROGRESS"}]


def test_invalid_transition_changes_nothing(db, timeline, lifecycle, staff_user, demand):
    demand_service.update_status(lifecycle, demand.id, staff_user, DemandStatus.SUCCESS)
    events_before = len(timeline.list_for_demand(demand.id))

    with pytest.raises(StatusTransitionError):
        demand_service.update_status(lifecycle, demand.id, staff_user, DemandStatus.ANALYSIS)

    db.refresh(demand)
    assert demand.status == "SUCCESS"
    assert len(timeline.list_for_demand(demand.id)) == events_before


def test_reopen_is_audited_as_flagged_status_change(audit, timeline, lifecycle, staff_user, demand):
    demand_service.update_status(lifecycle, demand.id, staff_user, DemandStatus.UNFEASIBLE)
    result = demand_service.update_status(
        lifecycle, demand.id, staff_user, DemandStatus.OPEN, reason="Agency reconsidered"
    )

    assert result.entity.status == "OPEN"
    assert result.entity.last_action_label == "Record reopened. Reason: Agency reconsidered"
    event = timeline.list_for_demand(demand.id)[0]
    assert event.event_metadata["reason"] == "Agency reconsidered"

    reopen_entry, finalize_entry = audit.get_logs_by_entity(demand.id)[:2]
    assert reopen_entry.action == LogAction.STATUS_CHANGE.value
    assert reopen_entry.meta["reason"] == "Agency reconsidered"
    assert reopen_entry.meta["reopen"] is True
    assert reopen_entry.changes == [
        {"field": "status", "old_value": "UNFEASIBLE", "new_value": "OPEN"}
    ]
    assert finalize_entry.action == LogAction.STATUS_CHANGE.value
    assert "reopen" not in finalize_entry.meta


def test_status_change_on_quarantined_demand_rejected(lifecycle, staff_user, demand):
    lifecycle.soft_delete(EntityKind.DEMAND, demand.id, staff_user, "Opened by mistake")
    with pytest.raises(LookupError):
        demand_service.update_status(lifecycle, demand.id, staff_user, DemandStatus.ANALYSIS)


# =============================================================================
# External forwarding
# =============================================================================

def test_update_external_links_protocol(audit, lifecycle, staff_user, demand):
    result = demand_service.update_external(
        lifecycle,
        demand.id,
        staff_user,
        external_sector="Secretaria de Obras",
        protocol_external="OBRAS-778",
        protocol_date=date(2024, 3, 10),
    )

    assert result.entity.external_sector == "Secretaria de Obras"
    assert result.entity.protocol_date == date(2024, 3, 10)
    assert result.entity.last_action_label == (
        "Linked external documentation. Agency: Secretaria de Obras | Protocol: OBRAS-778"
    )
    entry = audit.get_logs_by_entity(demand.id)[0]
    assert {c["field"] for c in entry.changes} == {
        "external_sector",
        "protocol_external",
        "protocol_date",
    }


def test_update_external_on_finalized_demand_locked(lifecycle, staff_user, demand):
    demand_service.update_status(lifecycle, demand.id, staff_user, DemandStatus.ARCHIVED)
    with pytest.raises(DemandLockedError):
        demand_service.update_external(lifecycle, demand.id, staff_user, external_sector="DETRAN")


# =============================================================================
# Transfer
# =============================================================================

def test_transfer_to_other_member_and_category(db, timeline, lifecycle, staff_user, assessor_user, demand):
    infra = Category(name="Infraestrutura", color="#3B82F6")
    db.add(infra)
    db.commit()

    result = demand_service.transfer(lifecycle, demand.id, staff_user, assessor_user.id, infra.id)

    assert result.entity.assigned_to_user_id == assessor_user.id
    assert result.entity.category_id == infra.id
    event = timeline.list_for_demand(demand.id)[0]
    assert event.type == TimelineEventType.ASSIGNMENT.value
    assert event.description == f"Transferred to {assessor_user.name} (Infraestrutura)"


def test_transfer_to_inactive_member_rejected(db, lifecycle, staff_user, demand):
    inactive = make_user(db, Role.ASSESSOR, status=UserStatus.INACTIVE)
    with pytest.raises(ValueError, match="active team member"):
        demand_service.transfer(lifecycle, demand.id, staff_user, inactive.id)


def test_transfer_to_same_assignee_rejected(lifecycle, staff_user, assessor_user, demand):
    demand_service.transfer(lifecycle, demand.id, staff_user, assessor_user.id)
    with pytest.raises(ValueError, match="already assigned"):
        demand_service.transfer(lifecycle, demand.id, staff_user, assessor_user.id)


# =============================================================================
# Attachments
# =============================================================================

def test_add_attachment_records_metadata(timeline, lifecycle, staff_user, demand):
    attachment, result = demand_service.add_attachment(
        lifecycle, demand.id, staff_user, "oficio.pdf", "application/pdf", io.BytesIO(b"%PDF-1.4 x")
    )

    assert attachment["name"] == "oficio.pdf"
    assert attachment["size"] == len(b"%PDF-1.4 x")
    assert attachment["url"].startswith("/files/demands/")
    assert result.entity.attachments[0]["id"] == attachment["id"]
    assert timeline.list_for_demand(demand.id)[0].description == "Attached file: oficio.pdf"


def test_add_attachment_rejects_disallowed_type(lifecycle, staff_user, demand):
    with pytest.raises(ValueError, match="not allowed"):
        demand_service.add_attachment(
            lifecycle, demand.id, staff_user, "run.exe", "application/octet-stream", io.BytesIO(b"MZ")
        )


# =============================================================================
# Dashboard
# =============================================================================

def test_summary_stats_excludes_quarantine(db, lifecycle, staff_user, assessor_user, constituent, category, demand):
    second = lifecycle.create(
        EntityKind.DEMAND,
        {"constituent_id": constituent.id, "category_id": category.id, "title": "Tree pruning"},
        staff_user,
    ).entity
    demand_service.transfer(lifecycle, second.id, staff_user, assessor_user.id)
    demand_service.update_status(lifecycle, second.id, staff_user, DemandStatus.SUCCESS)

    third = lifecycle.create(
        EntityKind.DEMAND, {"constituent_id": constituent.id, "title": "Noise complaint"}, staff_user
    ).entity
    lifecycle.soft_delete(EntityKind.DEMAND, third.id, staff_user, "Duplicate")

    stats = demand_service.summary_stats(db)

    assert stats["total_constituents"] == 1
    assert stats["open_demands"] == 1
    assert stats["finished_demands"] == 1
    assert stats["waiting_demands"] == 0
    assert stats["demands_by_category"] == [
        {"category_id": category.id, "name": category.name, "count": 2}
    ]
    assert stats["team_productivity"][0] == {"user_name": assessor_user.name, "resolved_count": 1}


def test_birthdays_on_matches_day_and_month(lifecycle, staff_user):
    def create(name, birth_date, neighborhood="BELA VISTA"):
        data = constituent_data(name=name, birth_date=birth_date)
        data["address"] = {**data["address"], "neighborhood": neighborhood}
        return lifecycle.create(EntityKind.CONSTITUENT, data, staff_user).entity

    create("Bruno Costa", date(1990, 3, 15))
    create("Ana Lima", date(1975, 3, 15))
    create("Caio Melo", date(1990, 3, 16))
    create("Davi Luz", None)
    quarantined = create("Eva Nunes", date(1980, 3, 15))
    lifecycle.soft_delete(EntityKind.CONSTITUENT, quarantined.id, staff_user, "Duplicate")

    found = demand_service.birthdays_on(lifecycle.db, date(2026, 3, 15))

    assert [c.name for c in found] == ["Ana Lima", "Bruno Costa"]
    assert demand_service.birthdays_on(lifecycle.db, date(2026, 12, 25)) == []


def test_summary_stats_counts_birthdays_and_neighborhoods(db, lifecycle, staff_user):
    def create(name, birth_date, neighborhood):
        data = constituent_data(name=name, birth_date=birth_date)
        data["address"] = {**data["address"], "neighborhood": neighborhood}
        return lifecycle.create(EntityKind.CONSTITUENT, data, staff_user).entity

    create("Ana Lima", date(1975, 7, 1), "BELA VISTA")
    create("Bruno Costa", date(1990, 7, 1), "Bela Vista ")
    create("Caio Melo", date(1990, 8, 2), "MOOCA")
    create("Davi Luz", None, "")
    quarantined = create("Eva Nunes", date(1980, 7, 1), "LAPA")
    lifecycle.soft_delete(EntityKind.CONSTITUENT, quarantined.id, staff_user, "Duplicate")

    stats = demand_service.summary_stats(db, today=date(2026, 7, 1))

    assert stats["birthdays_today"] == 2
    assert stats["active_neighborhoods"] == 2
