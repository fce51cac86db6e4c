"""Main entry point for deploy-to-cf."""

import signal
import sys
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from deploy_to_cf import __version__
from deploy_to_cf.api.deploy import router as deploy_router
from deploy_to_cf.api.health import router as health_router
from deploy_to_cf.api.middleware import (
    setup_error_handling,
    setup_logging_middleware,
    setup_metrics_middleware,
)
from deploy_to_cf.api.targets import router as targets_router
from deploy_to_cf.core.config import Settings
from deploy_to_cf.deploy.orchestrator import Orchestrator
from deploy_to_cf.utils.logging import setup_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = app.state.settings
    logger.info(
        "Starting deploy-to-cf",
        version=__version__,
        cf_url=settings.cf_url,
        service_timeout=settings.service_timeout,
        status_query=settings.status_query,
    )
    yield
    logger.info("Shutting down deploy-to-cf")


def create_app(settings: Settings | None = None, orchestrator: Orchestrator | None = None) -> FastAPI:
    """Create FastAPI application."""
    if settings is None:
        settings = Settings()

    setup_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="deploy-to-cf",
        version=__version__,
        description="Deploy GitHub repositories to Cloud Foundry",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.orchestrator = orchestrator or Orchestrator(settings)

    setup_error_handling(app)
    setup_logging_middleware(app)
    setup_metrics_middleware(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(deploy_router, tags=["deploy"])
    app.include_router(targets_router, tags=["targets"])

    if settings.metrics_enabled:
        app.mount("/metrics", make_asgi_app())

    return app


def run():
    """Run the application."""
    settings = Settings()

    def handle_sigterm(signum, frame):
        logger.info("Received SIGTERM, initiating graceful shutdown")
        sys.exit(0)

    signal.signal(signal.SIGTERM, handle_sigterm)

    config = uvicorn.Config(
        "deploy_to_cf.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
        reload=settings.reload,
        log_config=None,  # We handle logging ourselves
        access_log=False,  # Handled by middleware
    )

    server = uvicorn.Server(config)
    server.run()


if __name__ == "__main__":
    run()
