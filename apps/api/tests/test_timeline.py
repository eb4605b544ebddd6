"""Tests for demand timelines: ordering, mirrored label, admin edits."""

import pytest

from gabinete.db.enums import ContactChannel, ContactDirection, LogAction, TimelineEventType


def test_creation_event_and_mirrored_label(timeline, demand, staff_user):
    events = timeline.list_for_demand(demand.id)
    assert [e.type for e in events] == [TimelineEventType.CREATION.value]
    assert events[0].user_name == staff_user.name
    assert demand.last_action_label == "Demand opened"
    assert demand.last_user_name == staff_user.name


def test_append_orders_events_by_sequence(db, timeline, demand, staff_user):
    timeline.add_comment(demand, staff_user, "First follow-up")
    timeline.add_comment(demand, staff_user, "Second follow-up")

    oldest_first = timeline.list_for_demand(demand.id, newest_first=False)
    assert [e.sequence for e in oldest_first] == [1, 2, 3]
    newest_first = timeline.list_for_demand(demand.id)
    assert newest_first[0].description == "Second follow-up"

    db.refresh(demand)
    assert demand.last_action_label == "Second follow-up"


def test_add_comment_rejects_blank(timeline, demand, staff_user):
    with pytest.raises(ValueError):
        timeline.add_comment(demand, staff_user, "   ")


def test_add_comment_audits_preview(audit, timeline, demand, staff_user):
    text = "x" * 80
    timeline.add_comment(demand, staff_user, text)
    entry = audit.get_logs_by_entity(demand.id)[0]
    assert entry.action == LogAction.COMMENT.value
    assert entry.meta["preview"] == "x" * 50


def test_register_contact(audit, timeline, demand, staff_user):
    event = timeline.register_contact(
        demand, staff_user, ContactChannel.WHATSAPP, ContactDirection.OUTBOUND, "Confirmed visit"
    )
    assert event.type == TimelineEventType.CONTACT.value
    assert event.description == "Contacted constituent via whatsapp: Confirmed visit"
    assert event.event_metadata == {"channel": "whatsapp", "direction": "outbound"}

    inbound = timeline.register_contact(
        demand, staff_user, ContactChannel.PHONE, ContactDirection.INBOUND
    )
    assert inbound.description == "Constituent got in touch via phone"
    assert audit.get_logs_by_entity(demand.id)[0].action == LogAction.CONTACT.value


def test_edit_description_requires_admin(timeline, demand, staff_user):
    event = timeline.list_for_demand(demand.id)[0]
    with pytest.raises(PermissionError):
        timeline.edit_description(event, staff_user, "Rewritten")


def test_edit_keeps_first_original_content(db, audit, timeline, demand, admin_user):
    event = timeline.list_for_demand(demand.id)[0]

    timeline.edit_description(event, admin_user, "Demand opened at the front desk")
    timeline.edit_description(event, admin_user, "Demand opened by phone")

    db.refresh(event)
    assert event.description == "Demand opened by phone"
    assert event.event_metadata["original_content"] == "Demand opened"
    assert event.event_metadata["is_edited"] is True
    assert event.event_metadata["edited_by"] == admin_user.name

    # Latest event edited: mirrored label follows
    db.refresh(demand)
    assert demand.last_action_label == "Demand opened by phone"

    entry = audit.get_logs_by_entity(demand.id)[0]
    assert entry.action == LogAction.UPDATE.value
    assert entry.changes[0]["field"] == "timeline.description"
    assert entry.meta["event_id"] == str(event.id)


def test_edit_older_event_leaves_label(db, timeline, demand, staff_user, admin_user):
    first = timeline.list_for_demand(demand.id)[0]
    timeline.add_comment(demand, staff_user, "Called the utility company")

    timeline.edit_description(first, admin_user, "Opened at the front desk")

    db.refresh(demand)
    assert demand.last_action_label == "Called the utility company"


def test_edit_rejects_blank(timeline, demand, admin_user):
    event = timeline.list_for_demand(demand.id)[0]
    with pytest.raises(ValueError):
        timeline.edit_description(event, admin_user, "  ")
