"""Audit entry model: every incident command with before/after snapshots."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UTCDateTime


class AuditEntry(Base):
    __tablename__ = "audit_log"
    __table_args__ = (
        Index("ix_audit_actor_timestamp", "actor_id", "timestamp"),
        Index("ix_audit_action_timestamp", "action", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Entries outlive their incident
    incident_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("incidents.id", ondelete="SET NULL"), nullable=True, index=True
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    actor_display: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    old_state: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    new_state: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
