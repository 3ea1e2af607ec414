"""Main application entrypoint for the LearnHub upload service."""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from learnhub.api.middleware import HTTPErrorLoggingMiddleware
from learnhub.api.v1 import routes_health
from learnhub.api.v1.routes_upload import router as upload_router
from learnhub.core.config import settings
from learnhub.core.exceptions import UploadServiceError
from learnhub.core.logging import setup_logging
from learnhub.services.sweeper import ExpirySweeper
from learnhub.storage.factory import get_storage_backend
from learnhub.storage.upload_store import get_upload_store

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, error: str | None = None) -> JSONResponse:
    """Build the failure envelope."""
    content = {"success": False, "message": message}
    if error:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


@asynccontextmanager
async def lifespan(_: FastAPI):
    sweeper = None
    if settings.UPLOAD_SWEEPER_ENABLED:
        sweeper = ExpirySweeper(
            store_factory=get_upload_store,
            storage_factory=get_storage_backend,
            interval_seconds=settings.UPLOAD_SWEEP_INTERVAL_SECONDS,
            max_age=timedelta(hours=settings.UPLOAD_SESSION_TTL_HOURS),
        )
        sweeper.start()
    yield
    if sweeper is not None:
        await sweeper.stop()


def register_exception_handlers(app: FastAPI) -> None:
    """Map every failure onto the ``{success: false, message, error?}`` envelope."""

    @app.exception_handler(UploadServiceError)
    async def upload_service_exception_handler(_: Request, exc: UploadServiceError):
        return error_response(exc.status_code, exc.message, exc.error)

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(_: Request, exc: RequestValidationError):
        missing_fields = [
            str(error["loc"][-1])
            for error in exc.errors()
            if error.get("type") == "missing"
        ]
        if missing_fields:
            if len(missing_fields) == 1:
                message = f"{missing_fields[0]} is required"
            elif len(missing_fields) == 2:
                message = f"{missing_fields[0]} and {missing_fields[1]} are required"
            else:
                fields = ", ".join(missing_fields[:-1])
                message = f"{fields}, and {missing_fields[-1]} are required"
            return error_response(400, message)

        details = "; ".join(
            f"{'.'.join(str(item) for item in error['loc'] if item != 'body')}: {error['msg']}"
            for error in exc.errors()
        )
        return error_response(400, "Invalid request parameters", details)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(_: Request, exc: HTTPException):
        message = str(exc.detail) if exc.detail else "Request failed"
        return error_response(exc.status_code, message)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_: Request, exc: Exception):
        logger.error(f"Unexpected error: {exc}", exc_info=True)
        return error_response(500, "Internal server error", str(exc))


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    setup_logging()

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(HTTPErrorLoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(routes_health.router, tags=["health"])
    app.include_router(upload_router)

    return app


# Export app instance for ASGI servers
app = create_app()
