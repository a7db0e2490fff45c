"""Incident routes: the full incident lifecycle over HTTP."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from ...dependencies import get_actor, get_incident_manager
from ...models.incident import TITLE_MAX_LENGTH

router = APIRouter(prefix="/incidents", tags=["incidents"])


# --- Request bodies ---

class DeclareIncidentRequest(BaseModel):
    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    severity: str
    service: str = Field(min_length=1, max_length=255)
    commander: Optional[str] = None
    channel_id: Optional[str] = Field(default=None, max_length=100)


class DeclareFromTemplateRequest(BaseModel):
    template: str
    service: Optional[str] = None
    commander: Optional[str] = None
    channel_id: Optional[str] = Field(default=None, max_length=100)


class StatusUpdateRequest(BaseModel):
    message: str = Field(min_length=1, max_length=5000)


class ChangeStatusRequest(BaseModel):
    new_status: str = Field(pattern=r"^(investigating|identified|monitoring)$")
    note: Optional[str] = Field(default=None, max_length=5000)


class ChangeSeverityRequest(BaseModel):
    severity: str
    reason: Optional[str] = Field(default=None, max_length=1000)


# --- Endpoints ---

@router.get("/")
async def list_incidents(
    status: Optional[str] = None,
    severity: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
):
    """List incidents, newest first."""
    manager = get_incident_manager()
    return await manager.list_incidents(status=status, severity=severity, limit=limit)


@router.post("/", status_code=201)
async def declare_incident(body: DeclareIncidentRequest, actor: dict = Depends(get_actor)):
    """Declare a new incident. The caller is the reporter and, unless named otherwise, the commander."""
    manager = get_incident_manager()
    return await manager.declare(
        title=body.title,
        severity=body.severity,
        service=body.service,
        commander=body.commander or actor["id"],
        reporter=actor["id"],
        channel_id=body.channel_id,
        actor_display=actor["display"],
    )


@router.post("/from-template", status_code=201)
async def declare_from_template(body: DeclareFromTemplateRequest, actor: dict = Depends(get_actor)):
    manager = get_incident_manager()
    return await manager.declare_from_template(
        template_name=body.template,
        commander=body.commander or actor["id"],
        reporter=actor["id"],
        service=body.service,
        channel_id=body.channel_id,
        actor_display=actor["display"],
    )


@router.get("/by-channel/{channel_id}")
async def get_incident_by_channel(channel_id: str, include_resolved: bool = False):
    """The incident bound to a channel. Only active incidents unless include_resolved is set."""
    manager = get_incident_manager()
    if include_resolved:
        return await manager.get_latest_by_channel(channel_id)
    return await manager.get_by_channel(channel_id)


@router.get("/{incident_id}")
async def get_incident(incident_id: str):
    manager = get_incident_manager()
    return await manager.get_incident(incident_id)


@router.post("/{incident_id}/updates")
async def post_status_update(incident_id: str, body: StatusUpdateRequest, actor: dict = Depends(get_actor)):
    """Post a commander status update to the incident timeline."""
    manager = get_incident_manager()
    return await manager.post_status_update(
        incident_id, actor["id"], body.message, actor_display=actor["display"]
    )


@router.patch("/{incident_id}/status")
async def update_incident_status(incident_id: str, body: ChangeStatusRequest, actor: dict = Depends(get_actor)):
    """Move the incident between working states."""
    manager = get_incident_manager()
    return await manager.update_status(
        incident_id, actor["id"], body.new_status, note=body.note, actor_display=actor["display"]
    )


@router.patch("/{incident_id}/severity")
async def change_incident_severity(
    incident_id: str, body: ChangeSeverityRequest, actor: dict = Depends(get_actor)
):
    """Change severity. Entering P1/P2 re-broadcasts to that tier."""
    manager = get_incident_manager()
    incident, old_severity = await manager.change_severity(
        incident_id, actor["id"], body.severity, reason=body.reason, actor_display=actor["display"]
    )
    return {**incident, "previous_severity": old_severity.value}


@router.post("/{incident_id}/resolve")
async def resolve_incident(incident_id: str, actor: dict = Depends(get_actor)):
    manager = get_incident_manager()
    return await manager.resolve(incident_id, actor["id"], actor_display=actor["display"])


@router.get("/{incident_id}/timeline")
async def get_incident_timeline(incident_id: str):
    manager = get_incident_manager()
    return await manager.get_timeline(incident_id)


@router.get("/{incident_id}/audit")
async def get_incident_audit(incident_id: str):
    manager = get_incident_manager()
    return await manager.get_audit_trail(incident_id)


@router.get("/{incident_id}/notifications")
async def get_incident_notifications(incident_id: str):
    manager = get_incident_manager()
    return await manager.get_notifications(incident_id)


@router.get("/{incident_id}/postmortem", response_class=PlainTextResponse)
async def get_incident_postmortem(incident_id: str, actor: dict = Depends(get_actor)):
    """Markdown postmortem skeleton. Only available once the incident is resolved."""
    manager = get_incident_manager()
    document = await manager.generate_postmortem(incident_id, actor["id"])
    return PlainTextResponse(document, media_type="text/markdown")
