"""Timeline ledger: append-only, per-incident event log."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.timeline_event import (
    EVENT_DECLARED,
    EVENT_RESOLVED,
    EVENT_SEVERITY_CHANGE,
    EVENT_STATUS_UPDATE,
    EVENT_TYPES,
    TimelineEvent,
)
from ..utils.logging import get_logger

logger = get_logger("ledger.timeline")

_EVENT_ICONS = {
    EVENT_DECLARED: "\U0001F6A8",
    EVENT_STATUS_UPDATE: "\U0001F4DD",
    EVENT_SEVERITY_CHANGE: "⚠️",
    EVENT_RESOLVED: "✅",
}


class TimelineLedger:
    """Writes and reads the incident timeline.

    Writes happen only inside the state machine's transaction, so ``append``
    takes the caller's session and never commits on its own.
    """

    def __init__(self, db_session_factory=None):
        self._db_session_factory = db_session_factory

    def set_db_session_factory(self, factory) -> None:
        self._db_session_factory = factory

    @staticmethod
    def append(
        session: AsyncSession,
        incident_id: str,
        event_type: str,
        message: str,
        posted_by: str,
        timestamp: datetime,
    ) -> TimelineEvent:
        """Stage a timeline event on the caller's session."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown timeline event type: {event_type}")
        event = TimelineEvent(
            incident_id=incident_id,
            event_type=event_type,
            message=message,
            posted_by=posted_by,
            timestamp=timestamp,
        )
        session.add(event)
        return event

    async def get_timeline(self, incident_id: str) -> list[dict]:
        """Return the incident's events, oldest first, ties in insertion order."""
        async with self._db_session_factory() as session:
            result = await session.execute(
                select(TimelineEvent)
                .where(TimelineEvent.incident_id == incident_id)
                .order_by(TimelineEvent.timestamp.asc(), TimelineEvent.id.asc())
            )
            return [self._to_dict(e) for e in result.scalars().all()]

    @staticmethod
    def format_as_markdown(events: list[dict]) -> str:
        if not events:
            return "_No timeline events yet._"

        lines = []
        for event in events:
            ts = datetime.fromisoformat(event["timestamp"])
            icon = _EVENT_ICONS.get(event["event_type"], "")
            kind = event["event_type"].replace("_", " ").capitalize()
            lines.append(f"**{ts:%H:%M}** - {icon} {kind}\n→ {event['message']}\n")
        return "\n".join(lines)

    @staticmethod
    def _to_dict(event: TimelineEvent) -> dict:
        return {
            "id": event.id,
            "incident_id": event.incident_id,
            "event_type": event.event_type,
            "message": event.message,
            "posted_by": event.posted_by,
            "timestamp": event.timestamp.isoformat() if event.timestamp else None,
        }
