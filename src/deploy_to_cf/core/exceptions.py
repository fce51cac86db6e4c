"""Custom exceptions for deploy-to-cf."""

from typing import Any, List, Optional


class DeployError(Exception):
    """Base exception for all deployment errors."""

    stage = "deploy"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class ArchiveError(DeployError):
    """Archive download, decompression or extraction failed."""

    stage = "archive"


class ManifestError(DeployError):
    """Deployment descriptor could not be fetched, parsed or rewritten."""

    stage = "manifest"


class ManifestNotFoundError(ManifestError):
    """Deployment descriptor is absent at the requested revision."""
    pass


class ValidationError(DeployError):
    """Required parameters were not supplied."""

    stage = "parameters"

    def __init__(self, message: str, missing: Optional[List[str]] = None, code: Optional[str] = None):
        super().__init__(message, code)
        self.missing = list(missing or [])


class SessionError(DeployError):
    """Isolated CLI session could not be written."""

    stage = "session"


class ServiceProvisioningError(DeployError):
    """A backing service did not reach the ready state."""

    stage = "services"

    def __init__(self, label: str, state: str, cause: Optional[str] = None, outcome: Any = None):
        message = f"Service {label} {state.replace('_', ' ')}"
        if cause:
            message = f"{message}: {cause}"
        super().__init__(message, code=state)
        self.label = label
        self.state = state
        self.cause = cause
        # ServiceOutcome of the failed service, when the provisioner recorded one
        self.outcome = outcome


class ServiceRequestFailedError(ServiceProvisioningError):
    """The create-service request itself failed."""

    def __init__(self, label: str, cause: Optional[str] = None, outcome: Any = None):
        super().__init__(label, "request_failed", cause, outcome)


class ServiceTimeoutError(ServiceProvisioningError):
    """The service did not report ready within the timeout."""

    def __init__(self, label: str, cause: Optional[str] = None, outcome: Any = None):
        super().__init__(label, "timed_out", cause, outcome)


class ProvisioningCancelledError(ServiceProvisioningError):
    """Polling was cancelled before the service became ready."""

    def __init__(self, label: str, cause: Optional[str] = None, outcome: Any = None):
        super().__init__(label, "cancelled", cause, outcome)


class PushError(DeployError):
    """cf push failed."""

    stage = "push"


class RouteNotFoundError(DeployError):
    """Push succeeded but no route could be discovered."""

    stage = "route"


class AuthenticationError(DeployError):
    """No usable bearer token was supplied."""

    stage = "auth"


class CatalogError(DeployError):
    """Organization or space listing failed."""

    stage = "catalog"
