"""Incident template routes."""

from fastapi import APIRouter

from ...dependencies import get_app_config, get_incident_manager

router = APIRouter(prefix="/templates", tags=["templates"])


@router.get("/")
async def list_templates():
    """List the active incident templates."""
    manager = get_incident_manager()
    return await manager.list_templates()


@router.get("/services")
async def list_services():
    """Services offered when declaring an incident."""
    return get_app_config().services
