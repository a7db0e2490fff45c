"""Tests for StatusPageSync: background component updates."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from incident_commander.errors import ExternalServiceError
from incident_commander.statuspage import StatusPageSync

INCIDENT = {"id": "inc-1", "affected_service": "payments-api", "status": "investigating", "severity": "P1"}


def _client(side_effect=None):
    client = MagicMock()
    client.update_component_status = AsyncMock(return_value="major_outage", side_effect=side_effect)
    return client


class TestStatusPageSync:

    @pytest.mark.asyncio
    async def test_disabled_without_client(self, session_factory):
        sync = StatusPageSync(session_factory)
        assert sync.enabled is False
        assert sync.schedule(INCIDENT) is None

    @pytest.mark.asyncio
    async def test_unmapped_service_is_skipped(self, session_factory):
        client = _client()
        sync = StatusPageSync(session_factory, client=client)

        assert await sync.sync(INCIDENT) is False
        client.update_component_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mapped_service_is_updated(self, session_factory):
        client = _client()
        sync = StatusPageSync(session_factory, client=client)
        await sync.set_component_mapping("payments-api", "comp-1")
        await sync.set_component_mapping("payments-api", "comp-2")

        task = sync.schedule(INCIDENT)
        await sync.drain()

        assert task.result() is True
        client.update_component_status.assert_awaited_once_with("comp-2", "investigating", "P1")

    @pytest.mark.asyncio
    async def test_failures_are_swallowed(self, session_factory):
        client = _client(side_effect=ExternalServiceError("Statuspage", "HTTP 500"))
        sync = StatusPageSync(session_factory, client=client)
        await sync.set_component_mapping("payments-api", "comp-1")

        assert await sync.sync(INCIDENT) is False

    @pytest.mark.asyncio
    async def test_list_component_mappings(self, session_factory):
        sync = StatusPageSync(session_factory, client=_client())
        await sync.set_component_mapping("search", "comp-2")
        await sync.set_component_mapping("api", "comp-1")

        assert await sync.list_component_mappings() == [
            {"service_name": "api", "component_id": "comp-1"},
            {"service_name": "search", "component_id": "comp-2"},
        ]


class TestCheckConnection:

    @pytest.mark.asyncio
    async def test_connection_ok(self, session_factory):
        client = _client()
        client.test_connection = AsyncMock()
        sync = StatusPageSync(session_factory, client=client)

        assert await sync.check_connection() is True
        client.test_connection.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connection_failure_is_logged_not_raised(self, session_factory):
        client = _client()
        client.test_connection = AsyncMock(side_effect=ExternalServiceError("Statuspage", "HTTP 401"))
        sync = StatusPageSync(session_factory, client=client)

        assert await sync.check_connection() is False

    @pytest.mark.asyncio
    async def test_disabled_sync_skips_check(self, session_factory):
        assert await StatusPageSync(session_factory).check_connection() is False
