"""Error handlers: one JSON error envelope for every route."""

from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..errors import IncidentError
from ..utils.logging import get_logger

logger = get_logger("middleware.error_handler")


def _envelope(request: Request, status_code: int, detail, **extra) -> JSONResponse:
    content = {
        "error": True,
        "status_code": status_code,
        "detail": detail,
        **extra,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": getattr(request.state, "request_id", None),
    }
    return JSONResponse(status_code=status_code, content=content)


def register_error_handlers(app: FastAPI) -> None:
    """Register the standard error handlers on the app."""

    @app.exception_handler(IncidentError)
    async def incident_error_handler(request: Request, exc: IncidentError):
        if exc.status_code >= 500:
            logger.error("incident_error", error=str(exc), kind=type(exc).__name__, path=str(request.url.path))
        else:
            logger.info("incident_request_rejected", error=str(exc), kind=type(exc).__name__)
        return _envelope(request, exc.status_code, exc.user_message, kind=type(exc).__name__)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _envelope(request, exc.status_code, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _envelope(request, 422, "Validation error", errors=exc.errors())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            error=str(exc),
            request_id=getattr(request.state, "request_id", None),
            path=str(request.url.path),
            exc_info=True,
        )
        return _envelope(request, 500, "Internal server error")
