"""
Deployment pipeline.

- fetch/archive: stream a source tarball into a working directory
- manifest: load the deployment descriptor, bind parameters, rewrite the app manifest
- session/cli: isolated cf home and the subprocess runner bound to it
- provisioner/status: sequential service creation with bounded polling
- deployer: cf push and route discovery
- orchestrator: runs the stages above for one request
"""

from .models import DeploymentResult, ProvisionState, ServiceOutcome
from .orchestrator import Orchestrator

__all__ = [
    "Orchestrator",
    "DeploymentResult",
    "ProvisionState",
    "ServiceOutcome",
]
