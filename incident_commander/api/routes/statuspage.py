"""Status page routes: service to component mappings."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...dependencies import get_actor, get_status_sync

router = APIRouter(prefix="/statuspage", tags=["statuspage"])


class ComponentMappingRequest(BaseModel):
    component_id: str = Field(min_length=1, max_length=100)


@router.get("/mappings")
async def list_component_mappings():
    return await get_status_sync().list_component_mappings()


@router.put("/mappings/{service_name}")
async def set_component_mapping(
    service_name: str, body: ComponentMappingRequest, actor: dict = Depends(get_actor)
):
    """Map an affected service to the status page component it drives."""
    status_sync = get_status_sync()
    await status_sync.set_component_mapping(service_name, body.component_id)
    return {"service_name": service_name, "component_id": body.component_id}
