"""Incident Manager: incident lifecycle state machine."""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import select

from ..errors import NotFound, PermissionDenied, ValidationError
from ..ledger.audit import AuditLedger
from ..ledger.timeline import TimelineLedger
from ..models.incident import TITLE_MAX_LENGTH, Incident
from ..models.incident_template import IncidentTemplate
from ..models.timeline_event import (
    EVENT_DECLARED,
    EVENT_RESOLVED,
    EVENT_SEVERITY_CHANGE,
    EVENT_STATUS_UPDATE,
)
from ..notifications.messages import declared_message, resolution_message, severity_change_message
from ..notifications.router import NotificationEvent
from ..utils.channel import generate_channel_name
from ..utils.logging import get_logger
from ..utils.timefmt import elapsed_minutes, format_duration
from .postmortem import render_postmortem
from .severity import IncidentStatus, Severity

logger = get_logger("engine.incident_manager")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IncidentManager:
    """Owns incident records and enforces the lifecycle rules.

    Every mutation writes the incident row, a timeline event and an audit
    entry in one transaction. Notifications and status page sync run after
    the commit: they are best-effort and never undo a committed change.
    Mutations of the same incident are serialized by a per-incident lock;
    different incidents never contend.
    """

    def __init__(
        self,
        db_session_factory=None,
        notification_router=None,
        status_sync=None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._db_session_factory = db_session_factory
        self._router = notification_router
        self._status_sync = status_sync
        self._clock = clock or _utcnow
        self._timeline = TimelineLedger(db_session_factory)
        self._audit = AuditLedger(db_session_factory)
        # One lock per incident id, kept for the life of the process
        self._locks: dict[str, asyncio.Lock] = {}

    def set_db_session_factory(self, factory) -> None:
        self._db_session_factory = factory
        self._timeline.set_db_session_factory(factory)
        self._audit.set_db_session_factory(factory)

    def set_notification_router(self, router) -> None:
        self._router = router

    def set_status_sync(self, sync) -> None:
        self._status_sync = sync

    def _lock_for(self, incident_id: str) -> asyncio.Lock:
        lock = self._locks.get(incident_id)
        if lock is None:
            lock = self._locks[incident_id] = asyncio.Lock()
        return lock

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def declare(
        self,
        title: str,
        severity,
        service: str,
        commander: Optional[str] = None,
        reporter: Optional[str] = None,
        channel_id: Optional[str] = None,
        actor_display: Optional[str] = None,
    ) -> dict:
        """Declare a new incident. Anyone may declare; the commander defaults to the reporter."""
        title = (title or "").strip()
        if not title:
            raise ValidationError("title", "Title is required")
        if len(title) > TITLE_MAX_LENGTH:
            raise ValidationError("title", f"Title must be at most {TITLE_MAX_LENGTH} characters")
        severity = Severity.parse(severity)
        service = (service or "").strip()
        if not service:
            raise ValidationError("service", "Affected service is required")
        reporter = reporter or commander
        if not reporter:
            raise ValidationError("reporter", "Reporter is required")
        commander = commander or reporter

        now = self._clock()
        incident_id = str(uuid.uuid4())
        channel_id = channel_id or generate_channel_name(service, now.date(), incident_id)

        async with self._lock_for(incident_id):
            async with self._db_session_factory() as session:
                incident = Incident(
                    id=incident_id,
                    channel_id=channel_id,
                    title=title,
                    severity=severity.value,
                    status=IncidentStatus.DECLARED.value,
                    affected_service=service,
                    commander_id=commander,
                    declared_at=now,
                    created_at=now,
                    updated_at=now,
                )
                session.add(incident)
                await session.flush()

                self._timeline.append(session, incident_id, EVENT_DECLARED, f"Incident declared: {title}", reporter, now)
                self._audit.append(
                    session,
                    incident_id,
                    "declare_incident",
                    reporter,
                    now,
                    new_state={
                        "title": title,
                        "severity": severity.value,
                        "service": service,
                        "commander_id": commander,
                    },
                    actor_display=actor_display,
                )
                await session.commit()
                result = self._to_dict(incident)

            logger.info("incident_declared", id=incident_id, severity=severity.value, title=title, commander=commander)
            await self._notify(result, NotificationEvent.DECLARED, declared_message(result))
            self._sync_status_page(result)
        return result

    async def post_status_update(
        self, incident_id: str, actor: str, message: str, actor_display: Optional[str] = None
    ) -> dict:
        """Append a commander status update to the timeline. Does not notify."""
        async with self._lock_for(incident_id):
            async with self._db_session_factory() as session:
                incident = await self._load(session, incident_id)
                self._require_commander(incident, actor, "post status updates")
                self._require_active(incident, "Cannot post status updates to resolved incidents")
                message = (message or "").strip()
                if not message:
                    raise ValidationError("message", "Status update message is required")

                now = self._clock()
                incident.updated_at = now
                self._timeline.append(session, incident_id, EVENT_STATUS_UPDATE, message, actor, now)
                self._audit.append(
                    session,
                    incident_id,
                    "post_status_update",
                    actor,
                    now,
                    details={"message": message},
                    actor_display=actor_display,
                )
                await session.commit()
                result = self._to_dict(incident)

        logger.info("incident_status_update_posted", id=incident_id, actor=actor)
        return result

    async def change_severity(
        self,
        incident_id: str,
        actor: str,
        new_severity,
        reason: Optional[str] = None,
        actor_display: Optional[str] = None,
    ) -> tuple[dict, Severity]:
        """Change severity. Entering P1 or P2 re-runs broadcast routing for that tier.

        Returns the updated incident and the previous severity.
        """
        async with self._lock_for(incident_id):
            async with self._db_session_factory() as session:
                incident = await self._load(session, incident_id)
                self._require_commander(incident, actor, "change incident severity")
                self._require_active(incident, "Cannot change severity of resolved incidents")
                new_severity = Severity.parse(new_severity)
                reason = (reason or "").strip() or None

                old_severity = Severity(incident.severity)
                now = self._clock()
                incident.severity = new_severity.value
                incident.updated_at = now

                message = f"Severity changed from {old_severity.label} to {new_severity.label}"
                if reason:
                    message = f"{message} - {reason}"
                self._timeline.append(session, incident_id, EVENT_SEVERITY_CHANGE, message, actor, now)
                self._audit.append(
                    session,
                    incident_id,
                    "change_severity",
                    actor,
                    now,
                    old_state={"severity": old_severity.value},
                    new_state={"severity": new_severity.value},
                    details={"reason": reason} if reason else None,
                    actor_display=actor_display,
                )
                await session.commit()
                result = self._to_dict(incident)

            logger.info(
                "incident_severity_changed",
                id=incident_id,
                old=old_severity.value,
                new=new_severity.value,
                actor=actor,
            )
            # Broadcast on entry into P1/P2 regardless of direction
            if new_severity.broadcasts:
                await self._notify(
                    result,
                    NotificationEvent.ESCALATED,
                    severity_change_message(result, old_severity, actor, reason),
                )
            self._sync_status_page(result)
        return result, old_severity

    async def update_status(
        self,
        incident_id: str,
        actor: str,
        new_status,
        note: Optional[str] = None,
        actor_display: Optional[str] = None,
    ) -> dict:
        """Move between the working states (investigating, identified, monitoring)."""
        async with self._lock_for(incident_id):
            async with self._db_session_factory() as session:
                incident = await self._load(session, incident_id)
                self._require_commander(incident, actor, "change incident status")
                self._require_active(incident, "Cannot change status of resolved incidents")
                new_status = IncidentStatus.parse(new_status)
                if new_status is IncidentStatus.RESOLVED:
                    raise ValidationError("status", "Use resolve to close an incident")

                old_status = IncidentStatus(incident.status)
                if not old_status.can_transition_to(new_status):
                    raise ValidationError(
                        "status", f"Cannot transition from {old_status.value} to {new_status.value}"
                    )

                now = self._clock()
                incident.status = new_status.value
                incident.updated_at = now
                note = (note or "").strip() or None
                message = f"Status changed from {old_status.label} to {new_status.label}"
                if note:
                    message = f"{message}: {note}"
                self._timeline.append(session, incident_id, EVENT_STATUS_UPDATE, message, actor, now)
                self._audit.append(
                    session,
                    incident_id,
                    "update_status",
                    actor,
                    now,
                    old_state={"status": old_status.value},
                    new_state={"status": new_status.value},
                    details={"note": note} if note else None,
                    actor_display=actor_display,
                )
                await session.commit()
                result = self._to_dict(incident)

            logger.info("incident_status_changed", id=incident_id, old=old_status.value, new=new_status.value)
            self._sync_status_page(result)
        return result

    async def resolve(self, incident_id: str, actor: str, actor_display: Optional[str] = None) -> dict:
        """Resolve the incident. Resolving an already resolved incident is a no-op."""
        async with self._lock_for(incident_id):
            async with self._db_session_factory() as session:
                incident = await self._load(session, incident_id)
                self._require_commander(incident, actor, "resolve the incident")
                if IncidentStatus(incident.status).is_terminal:
                    logger.info("incident_already_resolved", id=incident_id, actor=actor)
                    return self._to_dict(incident)

                old_status = incident.status
                now = self._clock()
                incident.status = IncidentStatus.RESOLVED.value
                incident.resolved_at = now
                incident.duration_minutes = elapsed_minutes(incident.declared_at, now)
                incident.updated_at = now

                self._timeline.append(
                    session,
                    incident_id,
                    EVENT_RESOLVED,
                    f"Incident resolved (duration: {format_duration(incident.duration_minutes)})",
                    actor,
                    now,
                )
                self._audit.append(
                    session,
                    incident_id,
                    "resolve_incident",
                    actor,
                    now,
                    old_state={"status": old_status},
                    new_state={"status": IncidentStatus.RESOLVED.value},
                    details={"duration_minutes": incident.duration_minutes},
                    actor_display=actor_display,
                )
                await session.commit()
                result = self._to_dict(incident)

            logger.info("incident_resolved", id=incident_id, duration_minutes=result["duration_minutes"])
            # Same channel set as the declaration for this severity
            await self._notify(result, NotificationEvent.RESOLVED, resolution_message(result, actor))
            self._sync_status_page(result)
        return result

    async def declare_from_template(
        self,
        template_name: str,
        commander: Optional[str] = None,
        reporter: Optional[str] = None,
        service: Optional[str] = None,
        channel_id: Optional[str] = None,
        actor_display: Optional[str] = None,
    ) -> dict:
        """Declare an incident using a predefined template's title and severity."""
        async with self._db_session_factory() as session:
            template = (await session.execute(
                select(IncidentTemplate).where(
                    IncidentTemplate.name == template_name,
                    IncidentTemplate.is_active == True,  # noqa: E712
                )
            )).scalar_one_or_none()
        if template is None:
            raise NotFound("Template", template_name)

        service = service or template.affected_service
        if not service:
            raise ValidationError("service", f"Template '{template_name}' needs an affected service")

        return await self.declare(
            title=template.title,
            severity=template.severity,
            service=service,
            commander=commander,
            reporter=reporter,
            channel_id=channel_id,
            actor_display=actor_display,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_incident(self, incident_id: str) -> dict:
        async with self._db_session_factory() as session:
            return self._to_dict(await self._load(session, incident_id))

    async def get_by_channel(self, channel_id: str) -> dict:
        """The active (unresolved) incident bound to a channel."""
        async with self._db_session_factory() as session:
            incident = (await session.execute(
                select(Incident)
                .where(
                    Incident.channel_id == channel_id,
                    Incident.status != IncidentStatus.RESOLVED.value,
                )
                .order_by(Incident.declared_at.desc())
                .limit(1)
            )).scalar_one_or_none()
        if incident is None:
            raise NotFound("Incident", None)
        return self._to_dict(incident)

    async def get_latest_by_channel(self, channel_id: str) -> dict:
        """Most recent incident bound to a channel, resolved or not."""
        async with self._db_session_factory() as session:
            incident = (await session.execute(
                select(Incident)
                .where(Incident.channel_id == channel_id)
                .order_by(Incident.declared_at.desc())
                .limit(1)
            )).scalar_one_or_none()
        if incident is None:
            raise NotFound("Incident", None)
        return self._to_dict(incident)

    async def list_incidents(self, status=None, severity=None, limit: int = 50) -> list[dict]:
        async with self._db_session_factory() as session:
            query = select(Incident).order_by(Incident.declared_at.desc()).limit(limit)
            if status:
                query = query.where(Incident.status == IncidentStatus.parse(status).value)
            if severity:
                query = query.where(Incident.severity == Severity.parse(severity).value)
            result = await session.execute(query)
            return [self._to_dict(i) for i in result.scalars().all()]

    async def get_timeline(self, incident_id: str) -> list[dict]:
        await self.get_incident(incident_id)
        return await self._timeline.get_timeline(incident_id)

    async def get_audit_trail(self, incident_id: str) -> list[dict]:
        await self.get_incident(incident_id)
        return await self._audit.get_entries(incident_id)

    async def get_notifications(self, incident_id: str) -> list[dict]:
        await self.get_incident(incident_id)
        if self._router is None:
            return []
        return await self._router.get_records(incident_id)

    async def generate_postmortem(self, incident_id: str, actor: str) -> str:
        """Build the postmortem document. Any actor may request it once resolved."""
        incident = await self.get_incident(incident_id)
        if incident["status"] != IncidentStatus.RESOLVED.value:
            raise ValidationError("status", "Incident must be resolved first")
        events = await self._timeline.get_timeline(incident_id)
        document = render_postmortem(incident, events, generated_at=self._clock())
        logger.info("postmortem_generated", id=incident_id, actor=actor, events=len(events))
        return document

    async def list_templates(self) -> list[dict]:
        async with self._db_session_factory() as session:
            result = await session.execute(
                select(IncidentTemplate)
                .where(IncidentTemplate.is_active == True)  # noqa: E712
                .order_by(IncidentTemplate.name)
            )
            return [
                {
                    "name": t.name,
                    "title": t.title,
                    "severity": t.severity,
                    "affected_service": t.affected_service,
                    "description": t.description,
                }
                for t in result.scalars().all()
            ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _load(session, incident_id: str) -> Incident:
        incident = await session.get(Incident, incident_id)
        if incident is None:
            raise NotFound("Incident", incident_id)
        return incident

    @staticmethod
    def _require_commander(incident: Incident, actor: str, action: str) -> None:
        if incident.commander_id != actor:
            logger.warning("incident_permission_denied", id=incident.id, actor=actor, action=action)
            raise PermissionDenied(actor, action)

    @staticmethod
    def _require_active(incident: Incident, reason: str) -> None:
        if IncidentStatus(incident.status).is_terminal:
            raise ValidationError("status", reason)

    async def _notify(self, incident: dict, event: NotificationEvent, content: str) -> None:
        if self._router is None:
            return
        try:
            await self._router.route(incident, event, content)
        except Exception as exc:
            logger.error("incident_notification_error", id=incident["id"], notification_event=event.value, error=str(exc))

    def _sync_status_page(self, incident: dict) -> None:
        if self._status_sync is None:
            return
        try:
            self._status_sync.schedule(incident)
        except Exception as exc:
            logger.error("incident_status_sync_error", id=incident["id"], error=str(exc))

    @staticmethod
    def _to_dict(incident: Incident) -> dict:
        return {
            "id": incident.id,
            "channel_id": incident.channel_id,
            "title": incident.title,
            "severity": incident.severity,
            "status": incident.status,
            "affected_service": incident.affected_service,
            "commander_id": incident.commander_id,
            "declared_at": incident.declared_at.isoformat() if incident.declared_at else None,
            "resolved_at": incident.resolved_at.isoformat() if incident.resolved_at else None,
            "duration_minutes": incident.duration_minutes,
            "created_at": incident.created_at.isoformat() if incident.created_at else None,
            "updated_at": incident.updated_at.isoformat() if incident.updated_at else None,
        }
