"""Demand (service request) enums."""

from enum import Enum


class DemandStatus(str, Enum):
    """
    Demand status workflow.

    OPEN is the initial status. SUCCESS, UNFEASIBLE and ARCHIVED are
    terminal: a finalized demand only moves again through reopen (-> OPEN).
    """

    DRAFT = "DRAFT"
    OPEN = "OPEN"
    ANALYSIS = "ANALYSIS"
    IN_PROGRESS = "IN_PROGRESS"
    WAITING_THIRD_PARTY = "WAITING_THIRD_PARTY"
    SUCCESS = "SUCCESS"
    UNFEASIBLE = "UNFEASIBLE"
    ARCHIVED = "ARCHIVED"


class DemandPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TimelineEventType(str, Enum):
    """Narrative events appended to a demand's timeline."""

    CREATION = "CREATION"
    STATUS_CHANGE = "STATUS_CHANGE"
    COMMENT = "COMMENT"
    CONTACT = "CONTACT"
    ASSIGNMENT = "ASSIGNMENT"
    DELETION_REQUESTED = "DELETION_REQUESTED"
    RESTORED = "RESTORED"
    SLA_UPDATE = "SLA_UPDATE"
    PROTOCOL_UPDATE = "PROTOCOL_UPDATE"
    DOCUMENT_UPLOAD = "DOCUMENT_UPLOAD"
    EXTERNAL_UPDATE = "EXTERNAL_UPDATE"
    UNLOCK = "UNLOCK"


class ContactChannel(str, Enum):
    WHATSAPP = "whatsapp"
    PHONE = "phone"
    EMAIL = "email"
    IN_PERSON = "in_person"


class ContactDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"
