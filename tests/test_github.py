from unittest.mock import patch

import httpx
import pytest

from deploy_to_cf.core.exceptions import ArchiveError, ManifestError, ManifestNotFoundError
from deploy_to_cf.source.github import GitHubClient


RealClient = httpx.Client


def mock_transport(handler):
    def build(**kwargs):
        return RealClient(transport=httpx.MockTransport(handler), **kwargs)
    return patch("deploy_to_cf.source.github.httpx.Client", side_effect=build)


def test_get_file_raw_content():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, content=b"deployment: {}\n")

    with mock_transport(handler):
        content = GitHubClient("https://api.github.test", token="gh-token").get_file("acme", "hello", "manifest.yml", "v1")

    assert content == b"deployment: {}\n"
    request = seen[0]
    assert request.url.path == "/repos/acme/hello/contents/manifest.yml"
    assert request.url.params["ref"] == "v1"
    assert request.headers["Accept"] == "application/vnd.github.raw"
    assert request.headers["Authorization"] == "token gh-token"


def test_get_file_not_found():
    with mock_transport(lambda request: httpx.Response(404, json={"message": "Not Found"})):
        with pytest.raises(ManifestNotFoundError):
            GitHubClient("https://api.github.test").get_file("acme", "hello", "manifest.yml", "main")


def test_get_file_server_error():
    with mock_transport(lambda request: httpx.Response(500)):
        with pytest.raises(ManifestError) as exc_info:
            GitHubClient("https://api.github.test").get_file("acme", "hello", "manifest.yml", "main")
    assert not isinstance(exc_info.value, ManifestNotFoundError)


def test_get_file_connection_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with mock_transport(handler):
        with pytest.raises(ManifestError):
            GitHubClient("https://api.github.test").get_file("acme", "hello", "manifest.yml", "main")


def test_archive_link_is_redirect_target():
    location = "https://codeload.github.test/acme/hello/legacy.tar.gz/refs/heads/main"

    def handler(request):
        assert request.url.path == "/repos/acme/hello/tarball/main"
        return httpx.Response(302, headers={"Location": location})

    with mock_transport(handler):
        assert GitHubClient("https://api.github.test").get_archive_link("acme", "hello", "main") == location


def test_archive_link_missing_repo():
    with mock_transport(lambda request: httpx.Response(404)):
        with pytest.raises(ArchiveError):
            GitHubClient("https://api.github.test").get_archive_link("acme", "nope", "main")
