"""API middleware for logging, metrics, and error handling."""

import time
import uuid
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram
from starlette.exceptions import HTTPException as StarletteHTTPException

from deploy_to_cf.core.exceptions import (
    ArchiveError,
    AuthenticationError,
    CatalogError,
    DeployError,
    ManifestError,
    ManifestNotFoundError,
    ProvisioningCancelledError,
    PushError,
    RouteNotFoundError,
    ServiceProvisioningError,
    ServiceTimeoutError,
    SessionError,
    ValidationError,
)

logger = structlog.get_logger()

REQUEST_COUNT = Counter(
    "deploy_to_cf_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

REQUEST_DURATION = Histogram(
    "deploy_to_cf_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "endpoint"],
)

# Most specific class first
STATUS_CODES = [
    (ValidationError, 400),
    (AuthenticationError, 401),
    (ManifestNotFoundError, 404),
    (ProvisioningCancelledError, 409),
    (ManifestError, 422),
    (ServiceTimeoutError, 504),
    (ServiceProvisioningError, 502),
    (ArchiveError, 502),
    (PushError, 502),
    (RouteNotFoundError, 502),
    (CatalogError, 502),
    (SessionError, 500),
]


def status_for(exc: DeployError) -> int:
    for cls, status in STATUS_CODES:
        if isinstance(exc, cls):
            return status
    return 500


def error_body(exc: DeployError) -> dict:
    """Client-facing error payload; never includes CLI output."""
    body = {
        "error": exc.__class__.__name__,
        "stage": exc.stage,
        "message": str(exc),
        "code": exc.code,
    }
    if isinstance(exc, ServiceProvisioningError):
        body["service"] = exc.label
    if isinstance(exc, ValidationError):
        body["missing"] = exc.missing
    return body


def setup_error_handling(app: FastAPI) -> None:
    """Setup error handling middleware."""

    @app.exception_handler(DeployError)
    async def deploy_error_handler(request: Request, exc: DeployError) -> JSONResponse:
        """Handle deployment errors."""
        return JSONResponse(status_code=status_for(exc), content=error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle validation errors."""
        return JSONResponse(
            status_code=422,
            content={
                "error": "RequestValidationError",
                "message": "Invalid request data",
                "details": exc.errors(),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": "HTTPException",
                "message": exc.detail,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unexpected error", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={
                "error": "InternalServerError",
                "message": "An unexpected error occurred",
            },
        )


def setup_logging_middleware(app: FastAPI) -> None:
    """Setup request logging middleware."""

    @app.middleware("http")
    async def log_requests(request: Request, call_next: Callable) -> Response:
        """Log all requests."""
        request_id = str(uuid.uuid4())

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )
        start_time = time.time()

        try:
            response = await call_next(request)

            duration = time.time() - start_time
            logger.info(
                "Request completed",
                status_code=response.status_code,
                duration_seconds=duration,
            )

            response.headers["X-Request-ID"] = request_id

            return response

        except Exception as exc:
            duration = time.time() - start_time
            logger.exception(
                "Request failed",
                duration_seconds=duration,
                exc_info=exc,
            )
            raise
        finally:
            structlog.contextvars.clear_contextvars()


def setup_metrics_middleware(app: FastAPI) -> None:
    """Setup metrics collection middleware."""

    @app.middleware("http")
    async def collect_metrics(request: Request, call_next: Callable) -> Response:
        """Collect request metrics."""
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
        ).inc()

        REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        return response
