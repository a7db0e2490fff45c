"""Incident template model: pre-defined common incident scenarios."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UTCDateTime, utcnow
from .incident import TITLE_MAX_LENGTH

DEFAULT_TEMPLATES = [
    ("database-outage", "Database Outage", "P1", "database",
     "Complete database unavailability affecting all services"),
    ("api-degradation", "API Performance Degradation", "P2", "api-gateway",
     "API response times elevated, degraded user experience"),
    ("payment-failure", "Payment Processing Failure", "P1", "payment-processor",
     "Payments failing to process, revenue impact"),
    ("auth-slowness", "Authentication Service Slowness", "P2", "auth-service",
     "Login/authentication experiencing delays"),
    ("cdn-issues", "CDN Performance Issues", "P3", "cdn",
     "Static assets loading slowly or intermittently"),
    ("security-breach", "Security Incident", "P1", None,
     "Potential security breach detected, immediate investigation required"),
    ("deployment-rollback", "Failed Deployment Requiring Rollback", "P2", None,
     "Recent deployment causing issues, rollback needed"),
    ("third-party-outage", "Third-Party Service Outage", "P3", None,
     "External dependency is down, monitoring impact"),
]


class IncidentTemplate(Base):
    __tablename__ = "incident_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(TITLE_MAX_LENGTH), nullable=False)
    severity: Mapped[str] = mapped_column(String(2), nullable=False)
    affected_service: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
