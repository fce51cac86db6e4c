"""Organization and space listing for target selection."""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Tuple

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from deploy_to_cf.core.exceptions import CatalogError
from deploy_to_cf.core.models import OAuthToken, Org, Space

logger = structlog.get_logger()


class CatalogClient:
    """Pages through the v2 Cloud Controller organizations and spaces."""

    def __init__(self, cf_url: str, token: OAuthToken, timeout: float = 30.0, max_pages: int = 100):
        self.cf_url = cf_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.max_pages = max_pages

    def _pages(self, path: str) -> Iterator[Dict[str, Any]]:
        headers = {"Authorization": self.token.authorization, "Accept": "application/json"}
        next_url = path
        pages = 0
        with httpx.Client(base_url=self.cf_url, headers=headers, timeout=self.timeout) as client:
            while next_url and pages < self.max_pages:
                pages += 1
                try:
                    resp = client.get(next_url)
                    resp.raise_for_status()
                    page = resp.json()
                except httpx.HTTPError as e:
                    logger.error("Catalog request failed", path=next_url, error=str(e))
                    raise CatalogError(f"Failed to list {path}: {e}") from e
                except ValueError as e:
                    raise CatalogError(f"Invalid response for {path}") from e
                yield page
                next_url = page.get("next_url")

    def _resources(self, path: str) -> Iterator[Tuple[Dict[str, Any], Dict[str, Any]]]:
        """(metadata, entity) pairs across all pages of `path`."""
        for page in self._pages(path):
            if not isinstance(page, dict):
                raise CatalogError(f"Invalid response for {path}")
            for resource in page.get("resources") or []:
                try:
                    metadata, entity = resource["metadata"], resource["entity"]
                    if not isinstance(metadata, dict) or not isinstance(entity, dict):
                        raise TypeError("metadata and entity must be objects")
                except (KeyError, TypeError) as e:
                    logger.error("Malformed catalog record", path=path, error=str(e))
                    raise CatalogError(f"Malformed record in {path}") from e
                yield metadata, entity

    def list_organizations(self) -> List[Org]:
        try:
            return [
                Org(guid=metadata["guid"], name=entity["name"])
                for metadata, entity in self._resources("/v2/organizations")
            ]
        except (KeyError, PydanticValidationError) as e:
            raise CatalogError("Malformed record in /v2/organizations") from e

    def list_spaces(self) -> List[Space]:
        try:
            return [
                Space(
                    guid=metadata["guid"],
                    name=entity["name"],
                    org_guid=entity.get("organization_guid") or "",
                )
                for metadata, entity in self._resources("/v2/spaces")
            ]
        except (KeyError, PydanticValidationError) as e:
            raise CatalogError("Malformed record in /v2/spaces") from e

    def list_targets(self) -> List[Space]:
        """Spaces annotated with their organization's name."""
        org_names = {org.guid: org.name for org in self.list_organizations()}
        spaces = self.list_spaces()
        for space in spaces:
            space.org_name = org_names.get(space.org_guid, "")
        logger.info("Listed targets", orgs=len(org_names), spaces=len(spaces))
        return spaces
