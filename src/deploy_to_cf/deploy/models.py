"""Models for a single orchestration run."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ProvisionState(str, Enum):
    REQUESTED = "requested"
    READY = "ready"
    TIMED_OUT = "timed_out"
    REQUEST_FAILED = "request_failed"
    CANCELLED = "cancelled"


class ServiceOutcome(BaseModel):
    label: str
    state: ProvisionState = ProvisionState.REQUESTED
    elapsed: float = 0.0
    polls: int = 0


class DeploymentResult(BaseModel):
    """Outcome of a successful run."""

    route: str
    app_name: str
    services: List[ServiceOutcome] = Field(default_factory=list)


class DeployRequest(BaseModel):
    owner: str = Field(..., min_length=1)
    repo: str = Field(..., min_length=1)
    ref: str = Field(..., min_length=1)
    target: str = Field(..., description="orgGUID:orgName:spaceGUID:spaceName")
    parameters: Dict[str, str] = Field(default_factory=dict)
    service_timeout: Optional[int] = Field(None, gt=0)
