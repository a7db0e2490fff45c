"""FastAPI dependency injection providers."""

from typing import Optional

from fastapi import Header

from .config import IncidentConfig, get_config
from .database import get_session_factory
from .errors import ValidationError
from .utils.logging import get_logger

_dep_logger = get_logger("dependencies")

_config_instance: IncidentConfig | None = None
_gateway = None
_notification_router = None
_status_sync = None
_incident_manager = None


def get_app_config() -> IncidentConfig:
    """Get the application config singleton."""
    global _config_instance
    if _config_instance is None:
        _config_instance = get_config()
    return _config_instance


def get_gateway():
    """Get the messaging gateway singleton."""
    global _gateway
    if _gateway is None:
        from .notifications.gateway import SlackGateway
        config = get_app_config()
        if not config.slack_bot_token:
            _dep_logger.warning("slack_bot_token_missing")
        _gateway = SlackGateway(
            bot_token=config.slack_bot_token,
            base_url=config.slack_api_base_url,
        )
    return _gateway


def get_notification_router():
    """Get the notification router singleton."""
    global _notification_router
    if _notification_router is None:
        from .notifications.router import NotificationRouter
        config = get_app_config()
        _notification_router = NotificationRouter.from_config(
            config,
            db_session_factory=get_session_factory(config),
            gateway=get_gateway(),
        )
    return _notification_router


def get_status_sync():
    """Get the status page sync singleton. Disabled when no credentials are set."""
    global _status_sync
    if _status_sync is None:
        from .statuspage import StatusPageSync, StatuspageClient
        config = get_app_config()
        client = None
        if config.statuspage_enabled:
            client = StatuspageClient(
                api_key=config.statuspage_api_key,
                page_id=config.statuspage_page_id,
                timeout=config.statuspage_timeout_seconds,
            )
        else:
            _dep_logger.info("statuspage_sync_disabled")
        _status_sync = StatusPageSync(get_session_factory(config), client=client)
    return _status_sync


def get_incident_manager():
    """Get the incident manager singleton."""
    global _incident_manager
    if _incident_manager is None:
        from .engine.incident_manager import IncidentManager
        config = get_app_config()
        _incident_manager = IncidentManager(
            db_session_factory=get_session_factory(config),
            notification_router=get_notification_router(),
            status_sync=get_status_sync(),
        )
    return _incident_manager


async def get_actor(
    x_actor_id: Optional[str] = Header(default=None),
    x_actor_display: Optional[str] = Header(default=None),
) -> dict:
    """Identify the calling user from the X-Actor-Id / X-Actor-Display headers."""
    if not x_actor_id or not x_actor_id.strip():
        raise ValidationError("actor", "X-Actor-Id header is required")
    return {"id": x_actor_id.strip(), "display": x_actor_display}


def reset_singletons() -> None:
    """Drop every cached singleton so the next request rebuilds them."""
    global _config_instance, _gateway, _notification_router, _status_sync, _incident_manager
    _config_instance = None
    _gateway = None
    _notification_router = None
    _status_sync = None
    _incident_manager = None
