"""Incident Commander: incident lifecycle service.

FastAPI entry point with lifespan management and the health endpoint.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from sqlalchemy import text

from . import __version__
from .api.router import api_router
from .config import get_config
from .database import close_engine, create_tables, get_session_factory
from .dependencies import get_incident_manager, get_notification_router, get_status_sync
from .middleware.error_handler import register_error_handlers
from .middleware.request_id import RequestIDMiddleware
from .utils.logging import get_logger, setup_logging

config = get_config()
setup_logging(debug=config.debug, log_dir=config.log_dir)
logger = get_logger("incident_commander.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    # --- Startup ---
    logger.info("incident_commander_starting", host=config.host, port=config.port)

    await create_tables(config)

    # Build singletons eagerly so configuration errors surface at startup
    get_notification_router()
    get_incident_manager()
    status_sync = get_status_sync()
    if status_sync.enabled:
        await status_sync.check_connection()

    logger.info(
        "incident_commander_started",
        app=config.app_name,
        statuspage=status_sync.enabled,
        p1_channels=len(config.p1_channels),
        p2_channels=len(config.p2_channels),
        p1_dm_recipients=len(config.p1_dm_recipients),
    )

    yield

    # --- Shutdown ---
    logger.info("incident_commander_shutting_down")
    await status_sync.drain()
    await close_engine()
    logger.info("incident_commander_stopped")


app = FastAPI(
    title="Incident Commander",
    description="Incident declaration, escalation and resolution with severity-based notification routing",
    version=__version__,
    lifespan=lifespan,
)

register_error_handlers(app)
app.add_middleware(RequestIDMiddleware)
app.include_router(api_router)


@app.get("/health")
async def health():
    """Health check: reports database reachability and optional integrations."""
    database = "ok"
    try:
        async with get_session_factory(config)() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("health_database_unreachable", error=str(e))
        database = "unreachable"

    return {
        "name": config.app_name,
        "version": __version__,
        "status": "operational" if database == "ok" else "degraded",
        "database": database,
        "statuspage_sync": get_status_sync().enabled,
    }


def main():
    """Run the Incident Commander server."""
    uvicorn.run(
        "incident_commander.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )


if __name__ == "__main__":
    main()
