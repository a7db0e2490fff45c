"""Status page component mapping: service name to status page component ID."""

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UTCDateTime, utcnow


class StatuspageMapping(Base):
    __tablename__ = "statuspage_mappings"

    service_name: Mapped[str] = mapped_column(String(255), primary_key=True)
    component_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
