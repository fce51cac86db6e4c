"""deploy-to-cf - push third-party application archives onto Cloud Foundry."""

__version__ = "0.1.0"
__author__ = "deploy-to-cf maintainers"

from deploy_to_cf.core.config import Settings
from deploy_to_cf.core.models import DeploymentDescriptor
from deploy_to_cf.deploy.models import DeploymentResult

__all__ = ["Settings", "DeploymentDescriptor", "DeploymentResult", "__version__"]
