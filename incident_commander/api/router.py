"""Master API router: includes all sub-routers."""

from fastapi import APIRouter

from .routes.incidents import router as incidents_router
from .routes.statuspage import router as statuspage_router
from .routes.templates import router as templates_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(incidents_router)
api_router.include_router(statuspage_router)
api_router.include_router(templates_router)
