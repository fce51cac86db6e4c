"""API module for deploy-to-cf."""

from .deploy import router as deploy_router
from .health import router as health_router
from .targets import router as targets_router

__all__ = [
    "health_router",
    "deploy_router",
    "targets_router",
]
