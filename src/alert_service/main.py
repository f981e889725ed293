"""FastAPI application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from alert_service.api.routes import router
from alert_service.core.config import get_settings
from alert_service.core.exceptions import (
    AlertServiceException,
    InvalidTransitionError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from alert_service.core.logging import get_logger, setup_logging
from alert_service.services.alerts import get_alert_service

# Initialize logging
setup_logging()
logger = get_logger(__name__)

# Status code and error code per service exception; first match wins
ERROR_RESPONSES: list[tuple[type[AlertServiceException], int, str]] = [
    (ValidationError, 422, "VALIDATION_ERROR"),
    (NotFoundError, 404, "NOT_FOUND"),
    (InvalidTransitionError, 409, "INVALID_TRANSITION"),
    (TransientStoreError, 503, "STORE_UNAVAILABLE"),
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info("application_starting")
    service = get_alert_service()
    await service.start()
    logger.info("application_started", store=service.store_backend)

    yield

    # Shutdown
    logger.info("application_shutting_down")
    await service.stop()
    logger.info("application_stopped")


def error_body(message: str, error_code: str, details: dict | None = None) -> dict:
    body = {"success": False, "error": message, "error_code": error_code}
    if details:
        body["details"] = details
    return body


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Observer Alert Service",
        description="Alert lifecycle and multi-channel notification dispatch",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API routes
    app.include_router(router)

    # Prometheus metrics endpoint
    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose Prometheus metrics."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(AlertServiceException)
    async def service_exception_handler(
        request: Request, exc: AlertServiceException
    ) -> JSONResponse:
        """Translate service errors to HTTP responses."""
        for exc_type, status_code, error_code in ERROR_RESPONSES:
            if isinstance(exc, exc_type):
                break
        else:
            status_code, error_code = 500, "SERVICE_ERROR"

        details = {}
        if isinstance(exc, InvalidTransitionError):
            details = {"current_status": exc.current_status, "event": exc.event}
        elif isinstance(exc, NotFoundError):
            details = {"alert_id": exc.alert_id}

        logger.info(
            "request_rejected",
            path=request.url.path,
            status_code=status_code,
            error_code=error_code,
            error=exc.message,
        )
        return JSONResponse(
            status_code=status_code,
            content=error_body(exc.message, error_code, details),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Report malformed requests in the service error format."""
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg', 'invalid value')}" if location else "Invalid request"
        return JSONResponse(
            status_code=422,
            content=error_body(message, "VALIDATION_ERROR", {"errors": len(errors)}),
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=error_body("Internal server error", "INTERNAL_ERROR"),
        )

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "alert_service.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
