"""Timeline event model: immutable chronological record of an incident."""

from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UTCDateTime

EVENT_DECLARED = "declared"
EVENT_STATUS_UPDATE = "status_update"
EVENT_SEVERITY_CHANGE = "severity_change"
EVENT_RESOLVED = "resolved"

EVENT_TYPES = (EVENT_DECLARED, EVENT_STATUS_UPDATE, EVENT_SEVERITY_CHANGE, EVENT_RESOLVED)


class TimelineEvent(Base):
    __tablename__ = "incident_timeline"
    __table_args__ = (
        Index("ix_timeline_incident_timestamp", "incident_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    incident_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(30), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    posted_by: Mapped[str] = mapped_column(String(100), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
