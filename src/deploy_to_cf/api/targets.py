"""Target selection endpoint."""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request

from deploy_to_cf.api.deploy import require_token
from deploy_to_cf.cloud.catalog import CatalogClient
from deploy_to_cf.core.models import OAuthToken, Target

router = APIRouter()


@router.get("/targets")
def list_targets(request: Request, token: OAuthToken = Depends(require_token)) -> List[Dict[str, Any]]:
    """Spaces the caller can deploy to, each with its form encoding."""
    settings = request.app.state.settings
    spaces = CatalogClient(settings.cf_url, token).list_targets()
    return [
        {
            **space.model_dump(),
            "target": Target(
                org_guid=space.org_guid,
                org_name=space.org_name,
                space_guid=space.guid,
                space_name=space.name,
            ).encode(),
        }
        for space in spaces
    ]
