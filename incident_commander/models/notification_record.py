"""Notification record model: one row per attempted delivery."""

from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UTCDateTime

STATUS_SENT = "sent"
STATUS_FAILED = "failed"
STATUS_THROTTLED = "throttled"


class NotificationRecord(Base):
    __tablename__ = "incident_notifications"
    __table_args__ = (
        Index("ix_notifications_recipient_sent", "recipient", "sent_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    incident_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    notification_type: Mapped[str] = mapped_column(String(20), nullable=False)
    recipient: Mapped[str] = mapped_column(String(100), nullable=False)
    sent_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_SENT)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
