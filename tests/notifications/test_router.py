"""Tests for NotificationRouter: recipient selection, delivery and recording."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from incident_commander.errors import NotificationConfigError
from incident_commander.notifications.gateway import DeliveryKind, DeliveryResult
from incident_commander.notifications.router import NotificationEvent, NotificationRouter
from incident_commander.notifications.throttle import DirectMessageThrottle


def _incident(severity="P1", channel_id="inc-20240315-api", incident_id="11111111-2222"):
    return {"id": incident_id, "severity": severity, "channel_id": channel_id}


def _router(session_factory, gateway, **kwargs):
    defaults = dict(
        p1_channels=["C-ENG", "C-EXEC"],
        p2_channels=["C-ENG"],
        p1_dm_recipients=["U-CTO"],
        delivery_timeout=0.2,
    )
    defaults.update(kwargs)
    return NotificationRouter(db_session_factory=session_factory, gateway=gateway, **defaults)


class TestRecipientSelection:

    def test_p1_recipients(self, session_factory, gateway):
        router = _router(session_factory, gateway)
        assert router.recipients_for(_incident("P1")) == [
            ("inc-20240315-api", DeliveryKind.CHANNEL_POST),
            ("C-ENG", DeliveryKind.CHANNEL_POST),
            ("C-EXEC", DeliveryKind.CHANNEL_POST),
            ("U-CTO", DeliveryKind.DIRECT_MESSAGE),
        ]

    def test_p2_recipients(self, session_factory, gateway):
        router = _router(session_factory, gateway)
        assert router.recipients_for(_incident("P2")) == [
            ("inc-20240315-api", DeliveryKind.CHANNEL_POST),
            ("C-ENG", DeliveryKind.CHANNEL_POST),
        ]

    @pytest.mark.parametrize("severity", ["P3", "P4"])
    def test_low_severity_recipients(self, session_factory, gateway, severity):
        router = _router(session_factory, gateway)
        assert router.recipients_for(_incident(severity)) == [
            ("inc-20240315-api", DeliveryKind.CHANNEL_POST),
        ]

    def test_duplicates_removed(self, session_factory, gateway):
        router = _router(session_factory, gateway, p1_channels=["C-ENG", "C-ENG", "inc-20240315-api"])
        channels = [r for r, _ in router.recipients_for(_incident("P1"))]
        assert channels == ["inc-20240315-api", "C-ENG", "U-CTO"]

    def test_incident_without_channel(self, session_factory, gateway):
        router = _router(session_factory, gateway)
        assert router.recipients_for(_incident("P3", channel_id=None)) == []

    @pytest.mark.parametrize("bad", ["C-ENG", None, 42, ["C-ENG", ""], ["C-ENG", 7]])
    def test_malformed_recipient_config(self, session_factory, gateway, bad):
        with pytest.raises(NotificationConfigError):
            _router(session_factory, gateway, p1_channels=bad)

    def test_from_config(self, session_factory, gateway):
        config = SimpleNamespace(
            p1_channels=["C-A"],
            p2_channels=["C-B"],
            p1_dm_recipients=["U-A"],
            dm_throttle_seconds=60,
            delivery_timeout_seconds=3.0,
            record_throttled_notifications=True,
        )
        router = NotificationRouter.from_config(config, session_factory, gateway)
        assert router._throttle.window.total_seconds() == 60
        assert router._delivery_timeout == 3.0
        assert router._record_throttled is True


class TestRoute:

    @pytest.mark.asyncio
    async def test_route_records_every_attempt(self, session_factory, gateway):
        router = _router(session_factory, gateway)

        records = await router.route(_incident("P1"), NotificationEvent.DECLARED, "hello")

        assert len(records) == 4
        assert {r["status"] for r in records} == {"sent"}
        stored = await router.get_records("11111111-2222")
        assert [r["recipient"] for r in stored] == ["inc-20240315-api", "C-ENG", "C-EXEC", "U-CTO"]

    @pytest.mark.asyncio
    async def test_gateway_failure_recorded_not_raised(self, session_factory, gateway):
        gateway.failing.add("C-EXEC")
        router = _router(session_factory, gateway)

        records = await router.route(_incident("P1"), NotificationEvent.ESCALATED, "hello")

        failed = [r for r in records if r["status"] == "failed"]
        assert [r["recipient"] for r in failed] == ["C-EXEC"]
        assert failed[0]["error_message"] == "channel_not_found"

    @pytest.mark.asyncio
    async def test_gateway_exception_recorded_not_raised(self, session_factory):
        gateway = MagicMock()
        gateway.send = AsyncMock(side_effect=ConnectionError("connection reset"))
        router = _router(session_factory, gateway)

        records = await router.route(_incident("P3"), NotificationEvent.DECLARED, "hello")

        assert records[0]["status"] == "failed"
        assert records[0]["error_message"] == "connection reset"

    @pytest.mark.asyncio
    async def test_slow_delivery_times_out(self, session_factory):
        async def _hang(recipient, content, kind):
            await asyncio.sleep(5)
            return DeliveryResult.ok()

        gateway = MagicMock()
        gateway.send = _hang
        router = _router(session_factory, gateway, delivery_timeout=0.05)

        records = await router.route(_incident("P3"), NotificationEvent.DECLARED, "hello")

        assert records[0]["status"] == "failed"
        assert "timed out" in records[0]["error_message"]

    @pytest.mark.asyncio
    async def test_throttled_dm_not_recorded_by_default(self, session_factory, gateway):
        router = _router(session_factory, gateway)
        await router.route(_incident("P1"), NotificationEvent.DECLARED, "first")
        records = await router.route(_incident("P1"), NotificationEvent.ESCALATED, "second")

        assert "U-CTO" not in [r["recipient"] for r in records]
        assert gateway.recipients(DeliveryKind.DIRECT_MESSAGE) == ["U-CTO"]

    @pytest.mark.asyncio
    async def test_throttled_dm_recorded_when_enabled(self, session_factory, gateway):
        router = _router(session_factory, gateway, record_throttled=True)
        await router.route(_incident("P1"), NotificationEvent.DECLARED, "first")
        records = await router.route(_incident("P1"), NotificationEvent.ESCALATED, "second")

        throttled = [r for r in records if r["status"] == "throttled"]
        assert [r["recipient"] for r in throttled] == ["U-CTO"]
        assert gateway.recipients(DeliveryKind.DIRECT_MESSAGE) == ["U-CTO"]

    @pytest.mark.asyncio
    async def test_shared_throttle_across_routers(self, session_factory, gateway):
        throttle = DirectMessageThrottle()
        first = _router(session_factory, gateway, throttle=throttle)
        second = _router(session_factory, gateway, throttle=throttle)

        await first.route(_incident("P1"), NotificationEvent.DECLARED, "one")
        await second.route(_incident("P1"), NotificationEvent.ESCALATED, "two")

        assert gateway.recipients(DeliveryKind.DIRECT_MESSAGE) == ["U-CTO"]

    @pytest.mark.asyncio
    async def test_nothing_to_deliver(self, session_factory, gateway):
        router = _router(session_factory, gateway)
        records = await router.route(_incident("P4", channel_id=None), NotificationEvent.RESOLVED, "done")
        assert records == []
        assert gateway.sent == []
