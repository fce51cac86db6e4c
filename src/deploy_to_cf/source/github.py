"""GitHub contents API client."""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

import httpx
import structlog

from deploy_to_cf.core.exceptions import ArchiveError, ManifestError, ManifestNotFoundError

logger = structlog.get_logger()


class GitHubClient:
    """Fetches single files and tarball links from GitHub repositories."""

    def __init__(self, base_url: str = "https://api.github.com", token: Optional[str] = None, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {"User-Agent": "deploy-to-cf"}
        if token:
            self.headers["Authorization"] = f"token {token}"

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, headers=self.headers, timeout=self.timeout)

    def get_file(self, owner: str, repo: str, path: str, ref: str) -> bytes:
        """Raw contents of `path` at `ref`.

        Raises:
            ManifestNotFoundError: the file does not exist at that revision.
            ManifestError: any other failure.
        """
        url = f"/repos/{quote(owner)}/{quote(repo)}/contents/{quote(path)}"
        try:
            with self._client() as client:
                resp = client.get(
                    url,
                    params={"ref": ref},
                    headers={"Accept": "application/vnd.github.raw"},
                )
        except httpx.HTTPError as e:
            logger.error("GitHub request failed", owner=owner, repo=repo, path=path, error=str(e))
            raise ManifestError(f"Failed to fetch {path} from {owner}/{repo}: {e}") from e

        if resp.status_code == 404:
            raise ManifestNotFoundError(f"{path} not found in {owner}/{repo}@{ref}")
        if resp.status_code >= 400:
            raise ManifestError(f"Failed to fetch {path} from {owner}/{repo}: HTTP {resp.status_code}")
        return resp.content

    def get_archive_link(self, owner: str, repo: str, ref: str) -> str:
        """Download URL of the repository tarball at `ref`.

        GitHub answers the tarball endpoint with a redirect to codeload; the
        redirect target is returned without following it.
        """
        url = f"/repos/{quote(owner)}/{quote(repo)}/tarball/{quote(ref)}"
        try:
            with self._client() as client:
                resp = client.get(url, follow_redirects=False)
        except httpx.HTTPError as e:
            raise ArchiveError(f"Failed to resolve archive for {owner}/{repo}: {e}") from e

        location = resp.headers.get("Location")
        if resp.status_code in (301, 302, 303, 307, 308) and location:
            logger.debug("Resolved archive link", owner=owner, repo=repo, ref=ref, url=location)
            return location
        if resp.status_code == 200:
            return f"{self.base_url}{url}"
        raise ArchiveError(f"Archive not available for {owner}/{repo}@{ref}: HTTP {resp.status_code}")
