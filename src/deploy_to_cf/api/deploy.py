"""Deploy API: descriptor lookup and synchronous deployment."""

from __future__ import annotations

from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, Header, Query, Request

from deploy_to_cf.core.exceptions import AuthenticationError
from deploy_to_cf.core.models import OAuthToken, SourceRef, Target
from deploy_to_cf.deploy.manifest import load_descriptor
from deploy_to_cf.deploy.models import DeploymentResult, DeployRequest
from deploy_to_cf.deploy.orchestrator import Orchestrator
from deploy_to_cf.utils.logging import bind_deployment_context


router = APIRouter()
logger = structlog.get_logger()


def require_token(
    authorization: str | None = Header(default=None, alias="Authorization"),
    refresh_token: str | None = Header(default=None, alias="X-Refresh-Token"),
) -> OAuthToken:
    """Token for the caller's session, as issued by the login flow."""
    if not authorization or " " not in authorization.strip():
        raise AuthenticationError("Missing or invalid Authorization header")
    token_type, access_token = authorization.strip().split(" ", 1)
    if not access_token.strip():
        raise AuthenticationError("Missing or invalid Authorization header")
    return OAuthToken(
        token_type=token_type,
        access_token=access_token.strip(),
        refresh_token=refresh_token or "",
    )


def get_orchestrator(request: Request) -> Orchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        orchestrator = Orchestrator(request.app.state.settings)
        request.app.state.orchestrator = orchestrator
    return orchestrator


@router.get("/manifest/{owner}/{repo}")
def manifest_endpoint(
    owner: str,
    repo: str,
    request: Request,
    ref: str = Query("master"),
) -> Dict[str, Any]:
    """Deployment descriptor so the caller can collect parameters."""
    orchestrator = get_orchestrator(request)
    source = SourceRef(owner=owner, repo=repo, ref=ref)
    descriptor = load_descriptor(orchestrator.source_client, source, orchestrator.settings.manifest_filename)
    return {
        "owner": owner,
        "repo": repo,
        "ref": ref,
        "env": {name: spec.model_dump(exclude={"value"}) for name, spec in descriptor.env.items()},
        "services": [service.model_dump() for service in descriptor.services],
    }


# Plain `def` so each run executes on its own threadpool worker
@router.post("/deploy", response_model=DeploymentResult)
def deploy_endpoint(
    payload: DeployRequest,
    request: Request,
    token: OAuthToken = Depends(require_token),
) -> DeploymentResult:
    orchestrator = get_orchestrator(request)
    target = Target.parse(payload.target)
    source = SourceRef(owner=payload.owner, repo=payload.repo, ref=payload.ref)
    bind_deployment_context(owner=payload.owner, repo=payload.repo)

    logger.info("Deployment requested", source=source.slug, org=target.org_name, space=target.space_name)
    return orchestrator.deploy_from_source(
        source,
        payload.parameters,
        target,
        token,
        service_timeout=payload.service_timeout,
    )
