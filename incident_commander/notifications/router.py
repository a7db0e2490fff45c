"""Notification router: severity-based recipient selection, throttling and delivery."""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from collections.abc import Iterable
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..engine.severity import Severity
from ..errors import DeliveryFailure, NotificationConfigError
from ..models.notification_record import (
    STATUS_FAILED,
    STATUS_SENT,
    STATUS_THROTTLED,
    NotificationRecord,
)
from ..utils.logging import get_logger
from .gateway import DeliveryKind, MessagingGateway
from .throttle import DirectMessageThrottle

logger = get_logger("notifications.router")


class NotificationEvent(str, Enum):
    DECLARED = "declared"
    ESCALATED = "escalated"
    RESOLVED = "resolved"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validate_recipients(name: str, recipients) -> list[str]:
    if isinstance(recipients, str) or not isinstance(recipients, Iterable):
        raise NotificationConfigError(f"{name} must be a list of recipient IDs, got {type(recipients).__name__}")
    cleaned = []
    for recipient in recipients:
        if not isinstance(recipient, str) or not recipient.strip():
            raise NotificationConfigError(f"{name} contains an invalid recipient: {recipient!r}")
        cleaned.append(recipient.strip())
    return cleaned


class NotificationRouter:
    """Routes incident notifications by severity.

    Routing table:
        P1: incident channel + P1 broadcast channels + P1 direct-message recipients
        P2: incident channel + P2 broadcast channels
        P3/P4: incident channel only

    Direct messages are throttled per (recipient, incident); channel posts
    never are. Every attempted delivery is recorded as a NotificationRecord,
    sent or failed. Delivery problems are logged and recorded, never raised.
    """

    def __init__(
        self,
        db_session_factory,
        gateway: MessagingGateway,
        p1_channels: Iterable[str] = (),
        p2_channels: Iterable[str] = (),
        p1_dm_recipients: Iterable[str] = (),
        throttle: Optional[DirectMessageThrottle] = None,
        delivery_timeout: float = 10.0,
        record_throttled: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._session_factory = db_session_factory
        self._gateway = gateway
        self._p1_channels = _validate_recipients("p1_channels", p1_channels)
        self._p2_channels = _validate_recipients("p2_channels", p2_channels)
        self._p1_dm_recipients = _validate_recipients("p1_dm_recipients", p1_dm_recipients)
        self._clock = clock or _utcnow
        self._throttle = throttle or DirectMessageThrottle(clock=self._clock)
        self._delivery_timeout = delivery_timeout
        self._record_throttled = record_throttled

        if not self._p1_channels and not self._p1_dm_recipients:
            logger.warning("notification_no_p1_broadcast_configured")
        if not self._p2_channels:
            logger.warning("notification_no_p2_broadcast_configured")

    @classmethod
    def from_config(cls, config, db_session_factory, gateway: MessagingGateway, clock=None) -> "NotificationRouter":
        return cls(
            db_session_factory=db_session_factory,
            gateway=gateway,
            p1_channels=config.p1_channels,
            p2_channels=config.p2_channels,
            p1_dm_recipients=config.p1_dm_recipients,
            throttle=DirectMessageThrottle(window_seconds=config.dm_throttle_seconds, clock=clock),
            delivery_timeout=config.delivery_timeout_seconds,
            record_throttled=config.record_throttled_notifications,
            clock=clock,
        )

    def recipients_for(self, incident: dict) -> list[tuple[str, DeliveryKind]]:
        """Recipient set for the incident's current severity, duplicates removed."""
        severity = Severity(incident["severity"])
        targets: list[tuple[str, DeliveryKind]] = []
        if incident.get("channel_id"):
            targets.append((incident["channel_id"], DeliveryKind.CHANNEL_POST))

        if severity == Severity.P1:
            targets += [(c, DeliveryKind.CHANNEL_POST) for c in self._p1_channels]
            targets += [(u, DeliveryKind.DIRECT_MESSAGE) for u in self._p1_dm_recipients]
        elif severity == Severity.P2:
            targets += [(c, DeliveryKind.CHANNEL_POST) for c in self._p2_channels]

        return list(dict.fromkeys(targets))

    async def route(self, incident: dict, event: NotificationEvent, content: str) -> list[dict]:
        """Deliver ``content`` to every recipient for the incident's severity.

        Returns the NotificationRecords written for this pass. Deliveries run
        concurrently and each is bounded by the delivery timeout; the call
        returns only once all of them have been attempted.
        """
        incident_id = incident["id"]
        attempts = []
        skipped = []
        for recipient, kind in self.recipients_for(incident):
            if kind == DeliveryKind.DIRECT_MESSAGE and not self._throttle.should_send(recipient, incident_id):
                logger.info("notification_dm_throttled", recipient=recipient, incident_id=incident_id)
                skipped.append(recipient)
                continue
            attempts.append(self._deliver(recipient, kind, content))

        outcomes = list(await asyncio.gather(*attempts))
        if self._record_throttled:
            now = self._clock()
            outcomes += [
                {
                    "notification_type": DeliveryKind.DIRECT_MESSAGE.value,
                    "recipient": recipient,
                    "sent_at": now,
                    "status": STATUS_THROTTLED,
                    "error_message": None,
                }
                for recipient in skipped
            ]

        records = await self._record(incident_id, outcomes)
        logger.info(
            "notification_routed",
            incident_id=incident_id,
            notification_event=event.value,
            severity=incident["severity"],
            attempted=len(attempts),
            throttled=len(skipped),
            failed=sum(1 for o in outcomes if o["status"] == STATUS_FAILED),
        )
        return records

    async def _deliver(self, recipient: str, kind: DeliveryKind, content: str) -> dict:
        """Attempt one delivery and describe the outcome. Never raises."""
        sent_at = self._clock()
        try:
            result = await asyncio.wait_for(
                self._gateway.send(recipient, content, kind),
                timeout=self._delivery_timeout,
            )
            if not result.success:
                raise DeliveryFailure(recipient, result.reason or "unknown error")
        except DeliveryFailure as exc:
            failure = exc
        except asyncio.TimeoutError:
            failure = DeliveryFailure(recipient, f"timed out after {self._delivery_timeout}s")
        except Exception as exc:
            failure = DeliveryFailure(recipient, str(exc) or type(exc).__name__)
        else:
            return {
                "notification_type": kind.value,
                "recipient": recipient,
                "sent_at": sent_at,
                "status": STATUS_SENT,
                "error_message": None,
            }

        logger.warning(
            "notification_delivery_failed",
            recipient=recipient,
            kind=kind.value,
            error=failure.reason,
        )
        return {
            "notification_type": kind.value,
            "recipient": recipient,
            "sent_at": sent_at,
            "status": STATUS_FAILED,
            "error_message": failure.reason,
        }

    async def _record(self, incident_id: str, outcomes: list[dict]) -> list[dict]:
        if not outcomes:
            return []
        try:
            async with self._session_factory() as session:
                rows = [NotificationRecord(incident_id=incident_id, **outcome) for outcome in outcomes]
                session.add_all(rows)
                await session.commit()
                return [self._to_dict(r) for r in rows]
        except SQLAlchemyError as exc:
            logger.error("notification_record_failed", incident_id=incident_id, error=str(exc), exc_info=True)
            return []

    async def get_records(self, incident_id: str) -> list[dict]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(NotificationRecord)
                .where(NotificationRecord.incident_id == incident_id)
                .order_by(NotificationRecord.sent_at.asc(), NotificationRecord.id.asc())
            )
            return [self._to_dict(r) for r in result.scalars().all()]

    @staticmethod
    def _to_dict(record: NotificationRecord) -> dict:
        return {
            "id": record.id,
            "incident_id": record.incident_id,
            "notification_type": record.notification_type,
            "recipient": record.recipient,
            "sent_at": record.sent_at.isoformat() if record.sent_at else None,
            "status": record.status,
            "error_message": record.error_message,
        }
