"""SQLAlchemy models package."""

from .base import Base
from .incident import Incident
from .timeline_event import TimelineEvent
from .notification_record import NotificationRecord
from .audit_entry import AuditEntry
from .incident_template import IncidentTemplate
from .statuspage_mapping import StatuspageMapping

__all__ = [
    "Base",
    "Incident",
    "TimelineEvent",
    "NotificationRecord",
    "AuditEntry",
    "IncidentTemplate",
    "StatuspageMapping",
]
