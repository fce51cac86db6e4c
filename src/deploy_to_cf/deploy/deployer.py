"""Application push and route discovery."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

import structlog

from deploy_to_cf.core.exceptions import PushError, RouteNotFoundError
from deploy_to_cf.deploy.cli import CloudFoundryCLI

logger = structlog.get_logger()

ROUTE_PREFIX = "urls: "
# cf v6.30+ prints "routes:" instead
FALLBACK_PREFIXES = ("routes: ",)


def find_route(lines: Iterable[str]) -> Optional[str]:
    """Route from `cf app` output, preferring the `urls: ` line."""
    fallback = None
    for line in lines:
        if line.startswith(ROUTE_PREFIX):
            return line[len(ROUTE_PREFIX):].strip()
        if fallback is None:
            for prefix in FALLBACK_PREFIXES:
                if line.startswith(prefix):
                    fallback = line[len(prefix):].strip() or None
    return fallback


class AppDeployer:
    """Pushes an application through an isolated cf session."""

    def __init__(self, cli: CloudFoundryCLI):
        self.cli = cli

    def push(self, app_name: str, manifest_path: Path, app_dir: Path) -> None:
        logger.info("Pushing application", app=app_name, path=str(app_dir))
        result = self.cli.run("push", app_name, "-f", str(manifest_path), "-p", str(app_dir))
        if not result.ok:
            logger.error("Push failed", app=app_name, reason=result.describe())
            raise PushError(f"Push of {app_name} failed: {result.describe()}")
        logger.info("Application pushed", app=app_name)

    def discover_route(self, app_name: str) -> str:
        result = self.cli.run("app", app_name)
        if not result.ok:
            raise RouteNotFoundError(f"Could not query app {app_name}: {result.describe()}")
        route = find_route(result.lines())
        if not route:
            raise RouteNotFoundError(f"No route found for app {app_name}")
        logger.info("Route discovered", app=app_name, route=route)
        return route

    def deploy(self, app_name: str, manifest_path: Path, app_dir: Path) -> str:
        self.push(app_name, manifest_path, app_dir)
        return self.discover_route(app_name)
