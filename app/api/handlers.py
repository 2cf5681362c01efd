"""Exception handlers mapping Media Hub errors to HTTP answers."""
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.errors import ConfigIncomplete, RequestFailed

logger = logging.getLogger(__name__)


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ConfigIncomplete)
    async def config_incomplete_handler(request: Request, exc: ConfigIncomplete):
        logger.warning(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=409,
            content={"error": str(exc), "type": exc.__class__.__name__, "service": exc.service},
        )

    @app.exception_handler(RequestFailed)
    async def request_failed_handler(request: Request, exc: RequestFailed):
        logger.error(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=502,
            content={
                "error": str(exc),
                "type": exc.__class__.__name__,
                "service": exc.service,
                "status": exc.status,
            },
        )

    # Global exception handler for unhandled exceptions
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle all unhandled exceptions with detailed logging."""
        logger.exception(f"Unhandled exception in {request.method} {request.url}")
        return JSONResponse(
            status_code=500,
            content={
                "error": str(exc),
                "type": exc.__class__.__name__,
                "message": f"Internal server error: {str(exc)}",
                "path": str(request.url.path),
                "method": request.method,
                "traceback": traceback.format_exc(),
            },
        )
