"""Audit ledger: append-only record of incident commands with state snapshots."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.audit_entry import AuditEntry


class AuditLedger:
    """Writes and reads audit entries.

    Like the timeline, entries are staged on the state machine's session so
    they commit or roll back together with the incident change they describe.
    """

    def __init__(self, db_session_factory=None):
        self._db_session_factory = db_session_factory

    def set_db_session_factory(self, factory) -> None:
        self._db_session_factory = factory

    @staticmethod
    def append(
        session: AsyncSession,
        incident_id: Optional[str],
        action: str,
        actor_id: str,
        timestamp: datetime,
        old_state: Optional[dict[str, Any]] = None,
        new_state: Optional[dict[str, Any]] = None,
        details: Optional[dict[str, Any]] = None,
        actor_display: Optional[str] = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            incident_id=incident_id,
            action=action,
            actor_id=actor_id,
            actor_display=actor_display,
            old_state=old_state,
            new_state=new_state,
            details=details,
            timestamp=timestamp,
        )
        session.add(entry)
        return entry

    async def get_entries(self, incident_id: str) -> list[dict]:
        async with self._db_session_factory() as session:
            result = await session.execute(
                select(AuditEntry)
                .where(AuditEntry.incident_id == incident_id)
                .order_by(AuditEntry.timestamp.asc(), AuditEntry.id.asc())
            )
            return [self._to_dict(e) for e in result.scalars().all()]

    @staticmethod
    def _to_dict(entry: AuditEntry) -> dict:
        return {
            "id": entry.id,
            "incident_id": entry.incident_id,
            "action": entry.action,
            "actor_id": entry.actor_id,
            "actor_display": entry.actor_display,
            "old_state": entry.old_state,
            "new_state": entry.new_state,
            "details": entry.details,
            "timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
        }
