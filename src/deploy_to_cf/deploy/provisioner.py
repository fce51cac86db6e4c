"""Sequential backing-service provisioning with bounded polling."""

from __future__ import annotations

import json
import threading
import time
from typing import Callable, List, Optional, Sequence

import structlog

from deploy_to_cf.core.exceptions import (
    ProvisioningCancelledError,
    ServiceProvisioningError,
    ServiceRequestFailedError,
    ServiceTimeoutError,
)
from deploy_to_cf.core.models import ServiceSpec
from deploy_to_cf.deploy.cli import CloudFoundryCLI
from deploy_to_cf.deploy.models import ProvisionState, ServiceOutcome
from deploy_to_cf.deploy.status import LineMatchStatusQuery, StatusQuery

logger = structlog.get_logger()


def create_service_args(service: ServiceSpec) -> List[str]:
    args = ["create-service", service.service, service.plan, service.label]
    if service.tags:
        args += ["-t", ",".join(service.tags)]
    if service.config:
        args += ["-c", json.dumps(service.config)]
    return args


class ServiceProvisioner:
    """Creates services one at a time and waits for each to become ready.

    Args:
        cli: cf runner bound to the run's session home
        status_query: readiness check; defaults to line matching
        poll_interval: seconds between status queries
        sleep: blocking wait used when no cancellation event is given
        cleanup_on_failure: delete services created by this run when one fails
    """

    def __init__(
        self,
        cli: CloudFoundryCLI,
        status_query: Optional[StatusQuery] = None,
        poll_interval: float = 5.0,
        sleep: Optional[Callable[[float], None]] = None,
        cleanup_on_failure: bool = False,
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.cli = cli
        self.status_query = status_query or LineMatchStatusQuery(cli)
        self.poll_interval = poll_interval
        self.sleep = sleep or time.sleep
        self.cleanup_on_failure = cleanup_on_failure

    def provision_all(
        self,
        services: Sequence[ServiceSpec],
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> List[ServiceOutcome]:
        """Provision services in declaration order, stopping at the first failure."""
        outcomes: List[ServiceOutcome] = []
        created: List[str] = []
        for service in services:
            try:
                outcome = self.provision(service, timeout, cancel, created)
            except ServiceProvisioningError:
                if self.cleanup_on_failure:
                    self.cleanup(created)
                raise
            outcomes.append(outcome)
        return outcomes

    def provision(
        self,
        service: ServiceSpec,
        timeout: float,
        cancel: Optional[threading.Event] = None,
        created: Optional[List[str]] = None,
    ) -> ServiceOutcome:
        logger.info("Creating service", label=service.label, service=service.service, plan=service.plan)
        outcome = ServiceOutcome(label=service.label)
        result = self.cli.run(*create_service_args(service))
        if not result.ok:
            outcome.state = ProvisionState.REQUEST_FAILED
            logger.error("Service creation request failed", label=service.label, reason=result.describe())
            raise ServiceRequestFailedError(service.label, result.describe(), outcome)

        if created is not None:
            created.append(service.label)
        return self.wait_until_ready(outcome, timeout, cancel)

    def wait_until_ready(
        self,
        outcome: ServiceOutcome,
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> ServiceOutcome:
        """Poll until Ready, or fail once elapsed exceeds timeout."""
        while True:
            outcome.polls += 1
            if self.status_query.is_ready(outcome.label):
                outcome.state = ProvisionState.READY
                logger.info("Service ready", label=outcome.label, elapsed=outcome.elapsed, polls=outcome.polls)
                return outcome

            outcome.elapsed += self.poll_interval
            if outcome.elapsed > timeout:
                outcome.state = ProvisionState.TIMED_OUT
                logger.error("Service timed out", label=outcome.label, elapsed=outcome.elapsed, timeout=timeout)
                raise ServiceTimeoutError(outcome.label, f"not ready after {timeout}s", outcome)

            if self._wait(cancel):
                outcome.state = ProvisionState.CANCELLED
                logger.warning("Service polling cancelled", label=outcome.label, elapsed=outcome.elapsed)
                raise ProvisioningCancelledError(outcome.label, outcome=outcome)

    def _wait(self, cancel: Optional[threading.Event]) -> bool:
        """Sleep one interval; True when cancellation was requested."""
        if cancel is None:
            self.sleep(self.poll_interval)
            return False
        return cancel.wait(self.poll_interval)

    def cleanup(self, labels: List[str]) -> None:
        """Best-effort removal of services created by this run, newest first."""
        for label in reversed(labels):
            result = self.cli.run("delete-service", label, "-f")
            if result.ok:
                logger.info("Deleted service after failure", label=label)
            else:
                logger.warning("Failed to delete service", label=label, reason=result.describe())
