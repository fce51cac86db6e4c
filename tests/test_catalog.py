from unittest.mock import patch

import httpx
import pytest

from deploy_to_cf.cloud.catalog import CatalogClient
from deploy_to_cf.core.exceptions import CatalogError


RealClient = httpx.Client


def resource(guid, name, **entity):
    return {"metadata": {"guid": guid}, "entity": {"name": name, **entity}}


PAGES = {
    "/v2/organizations": {
        "next_url": "/v2/organizations?page=2",
        "resources": [resource("o1", "alpha")],
    },
    "/v2/organizations?page=2": {
        "next_url": None,
        "resources": [resource("o2", "beta")],
    },
    "/v2/spaces": {
        "next_url": None,
        "resources": [
            resource("s1", "dev", organization_guid="o1"),
            resource("s2", "prod", organization_guid="o2"),
            resource("s3", "orphan", organization_guid="o9"),
        ],
    },
}


def mock_transport(handler):
    def build(**kwargs):
        return RealClient(transport=httpx.MockTransport(handler), **kwargs)
    return patch("deploy_to_cf.cloud.catalog.httpx.Client", side_effect=build)


def test_list_targets_follows_pages(token):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        path = request.url.raw_path.decode()
        return httpx.Response(200, json=PAGES[path])

    with mock_transport(handler):
        spaces = CatalogClient("https://api.cf.test", token).list_targets()

    assert [(s.name, s.org_name) for s in spaces] == [("dev", "alpha"), ("prod", "beta"), ("orphan", "")]
    assert [r.url.raw_path.decode() for r in seen] == [
        "/v2/organizations",
        "/v2/organizations?page=2",
        "/v2/spaces",
    ]
    assert all(r.headers["Authorization"] == "bearer access-123" for r in seen)


def test_upstream_error_is_catalog_error(token):
    with mock_transport(lambda request: httpx.Response(401, json={"error": "unauthorized"})):
        with pytest.raises(CatalogError):
            CatalogClient("https://api.cf.test", token).list_organizations()


def test_invalid_json_is_catalog_error(token):
    with mock_transport(lambda request: httpx.Response(200, text="<html>")):
        with pytest.raises(CatalogError):
            CatalogClient("https://api.cf.test", token).list_spaces()


def test_page_limit(token):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"next_url": "/v2/spaces", "resources": []})

    with mock_transport(handler):
        assert CatalogClient("https://api.cf.test", token, max_pages=3).list_spaces() == []

    assert len(calls) == 3


@pytest.mark.parametrize(
    "record",
    [
        {"entity": {"name": "dev"}},
        {"metadata": {"guid": "s1"}},
        {"metadata": {"guid": "s1"}, "entity": None},
        {"metadata": {}, "entity": {"name": "dev"}},
        "not-an-object",
    ],
)
def test_malformed_record_is_catalog_error(token, record):
    page = {"next_url": None, "resources": [record]}

    with mock_transport(lambda request: httpx.Response(200, json=page)):
        with pytest.raises(CatalogError):
            CatalogClient("https://api.cf.test", token).list_spaces()


def test_non_object_page_is_catalog_error(token):
    with mock_transport(lambda request: httpx.Response(200, json=[1, 2])):
        with pytest.raises(CatalogError):
            CatalogClient("https://api.cf.test", token).list_organizations()
