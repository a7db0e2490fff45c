"""Fire-and-forget status page synchronization."""

import asyncio
from typing import Optional

from sqlalchemy import select

from ..models.statuspage_mapping import StatuspageMapping
from ..utils.logging import get_logger
from .client import StatuspageClient

logger = get_logger("statuspage.sync")


class StatusPageSync:
    """Pushes incident status changes to the status page in the background.

    ``schedule`` returns immediately. The sync task looks up the component
    mapped to the incident's service and updates it; any failure is logged
    and dropped, so the incident operation that scheduled it is unaffected.
    """

    def __init__(self, db_session_factory, client: Optional[StatuspageClient] = None):
        self._session_factory = db_session_factory
        self._client = client
        self._tasks: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def schedule(self, incident: dict) -> Optional[asyncio.Task]:
        if not self.enabled:
            return None
        task = asyncio.create_task(self.sync(incident))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def sync(self, incident: dict) -> bool:
        """Sync one incident snapshot. Returns True if the status page was updated."""
        try:
            component_id = await self.get_component_id(incident["affected_service"])
            if component_id is None:
                logger.debug("statuspage_no_mapping", service=incident["affected_service"])
                return False
            await self._client.update_component_status(component_id, incident["status"], incident["severity"])
            logger.info("statuspage_synced", incident_id=incident["id"], component_id=component_id)
            return True
        except Exception as exc:
            logger.error("statuspage_sync_failed", incident_id=incident.get("id"), error=str(exc))
            return False

    async def get_component_id(self, service_name: str) -> Optional[str]:
        async with self._session_factory() as session:
            return (await session.execute(
                select(StatuspageMapping.component_id).where(StatuspageMapping.service_name == service_name)
            )).scalar_one_or_none()

    async def list_component_mappings(self) -> list[dict]:
        async with self._session_factory() as session:
            result = await session.execute(select(StatuspageMapping).order_by(StatuspageMapping.service_name))
            return [
                {"service_name": m.service_name, "component_id": m.component_id}
                for m in result.scalars().all()
            ]

    async def set_component_mapping(self, service_name: str, component_id: str) -> None:
        async with self._session_factory() as session:
            mapping = await session.get(StatuspageMapping, service_name)
            if mapping is None:
                session.add(StatuspageMapping(service_name=service_name, component_id=component_id))
            else:
                mapping.component_id = component_id
            await session.commit()
        logger.info("statuspage_mapping_set", service=service_name, component_id=component_id)

    async def check_connection(self) -> bool:
        """Verify the page is reachable with the configured key. Failures are logged, not raised."""
        if not self.enabled:
            return False
        try:
            await self._client.test_connection()
        except Exception as exc:
            logger.warning("statuspage_connection_failed", error=str(exc))
            return False
        logger.info("statuspage_connection_ok")
        return True

    async def drain(self) -> None:
        """Wait for in-flight sync tasks (used at shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
