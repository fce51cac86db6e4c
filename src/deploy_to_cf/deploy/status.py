"""Service readiness queries.

The poll loop only asks `is_ready(label)`; how readiness is read off the
platform is up to the query implementation.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Iterable, Optional
from urllib.parse import quote

import structlog

from deploy_to_cf.deploy.cli import CloudFoundryCLI

logger = structlog.get_logger()

CREATE_SUCCEEDED = "Status: create succeeded"


class StatusQuery(ABC):
    """Readiness check for one service instance."""

    @abstractmethod
    def is_ready(self, label: str) -> bool:
        """True once the instance reports a successful create.

        Query failures are reported as not ready.
        """


def _normalize(line: str) -> str:
    return " ".join(line.split()).lower()


class LineMatchStatusQuery(StatusQuery):
    """Scrapes `cf service <label>` for the create-succeeded status line."""

    def __init__(self, cli: CloudFoundryCLI, success_line: str = CREATE_SUCCEEDED):
        self.cli = cli
        self.success_line = success_line

    def matches(self, lines: Iterable[str]) -> bool:
        # Newer CLIs print "status:    create succeeded"
        wanted = _normalize(self.success_line)
        for line in lines:
            if line == self.success_line or _normalize(line) == wanted:
                return True
        return False

    def is_ready(self, label: str) -> bool:
        result = self.cli.run("service", label)
        if not result.ok:
            logger.debug("Service status query failed", label=label, reason=result.describe())
            return False
        return self.matches(result.lines())


class StructuredStatusQuery(StatusQuery):
    """Reads `last_operation` from the v2 API via `cf curl`.

    The lookup goes through the target space's service_instances so an
    instance with the same name in another space is never reported.
    """

    def __init__(self, cli: CloudFoundryCLI, space_guid: str):
        if not space_guid:
            raise ValueError("space_guid is required")
        self.cli = cli
        self.space_guid = space_guid

    @staticmethod
    def parse(body: str, space_guid: Optional[str] = None) -> Optional[dict]:
        """last_operation of the first resource in `space_guid`, if any."""
        try:
            data = json.loads(body)
        except ValueError:
            return None
        resources = data.get("resources") if isinstance(data, dict) else None
        for resource in resources or []:
            entity = resource.get("entity") if isinstance(resource, dict) else None
            if not isinstance(entity, dict):
                continue
            if space_guid and entity.get("space_guid", space_guid) != space_guid:
                continue
            return entity.get("last_operation")
        return None

    def path(self, label: str) -> str:
        return f"/v2/spaces/{quote(self.space_guid)}/service_instances?q=name:{quote(label)}"

    def is_ready(self, label: str) -> bool:
        result = self.cli.run("curl", self.path(label))
        if not result.ok:
            logger.debug("Service status query failed", label=label, reason=result.describe())
            return False
        operation = self.parse(result.stdout, self.space_guid)
        if not operation:
            return False
        return operation.get("type") == "create" and operation.get("state") == "succeeded"


def make_status_query(kind: str, cli: CloudFoundryCLI, space_guid: Optional[str] = None) -> StatusQuery:
    if kind == "structured":
        return StructuredStatusQuery(cli, space_guid)
    if kind == "lines":
        return LineMatchStatusQuery(cli)
    raise ValueError(f"Unknown status query: {kind}")
