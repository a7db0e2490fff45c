"""Statuspage.io API client for component status updates."""

import httpx

from ..engine.severity import IncidentStatus, Severity
from ..errors import ExternalServiceError
from ..utils.logging import get_logger

logger = get_logger("statuspage.client")

STATUSPAGE_API = "https://api.statuspage.io/v1"


def map_status(status: IncidentStatus, severity: Severity) -> str:
    """Map incident status and severity to a Statuspage component status."""
    status = IncidentStatus(status)
    severity = Severity(severity)
    if status is IncidentStatus.RESOLVED:
        return "operational"
    if status in (IncidentStatus.DECLARED, IncidentStatus.INVESTIGATING):
        return {
            Severity.P1: "major_outage",
            Severity.P2: "partial_outage",
        }.get(severity, "degraded_performance")
    # Identified or monitoring: cause known, impact shrinking
    if severity is Severity.P1:
        return "partial_outage"
    return "degraded_performance"


class StatuspageClient:
    """Updates component status on a Statuspage.io page."""

    def __init__(self, api_key: str, page_id: str, timeout: float = 30.0, base_url: str = STATUSPAGE_API):
        self._api_key = api_key
        self._page_id = page_id
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")

    @property
    def _headers(self) -> dict:
        return {
            "Authorization": f"OAuth {self._api_key}",
            "Content-Type": "application/json",
        }

    async def update_component_status(self, component_id: str, status: IncidentStatus, severity: Severity) -> str:
        """PATCH the component to the mapped status. Returns the status sent.

        Raises:
            ExternalServiceError: on a non-2xx response.
        """
        component_status = map_status(status, severity)
        url = f"{self._base_url}/pages/{self._page_id}/components/{component_id}"
        logger.debug("statuspage_updating", component_id=component_id, component_status=component_status)

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.patch(
                url,
                json={"component": {"status": component_status}},
                headers=self._headers,
            )

        if response.is_error:
            body = response.text[:500]
            logger.error("statuspage_http_error", status=response.status_code, body=body)
            raise ExternalServiceError("Statuspage", f"HTTP {response.status_code}: {body}")

        logger.info("statuspage_component_updated", component_id=component_id, component_status=component_status)
        return component_status

    async def test_connection(self) -> None:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(f"{self._base_url}/pages/{self._page_id}", headers=self._headers)
        if response.is_error:
            raise ExternalServiceError("Statuspage", f"Connection test failed: HTTP {response.status_code}")
