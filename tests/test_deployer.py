from pathlib import Path

import pytest

from deploy_to_cf.core.exceptions import PushError, RouteNotFoundError
from deploy_to_cf.deploy.deployer import AppDeployer, find_route

from conftest import FakeCLI, failed, ok


APP_OUTPUT = """\
Showing health and status for app hello in org my-org / space dev as admin...
OK

requested state: started
instances: 1/1
usage: 256M x 1 instances
urls: foo.example.com
last uploaded: Mon Oct 19 10:00:00 UTC 2026
"""


def test_find_route():
    assert find_route(APP_OUTPUT.splitlines()) == "foo.example.com"


def test_find_route_exact_prefix_only():
    assert find_route(["  urls: indented.example.com", "myurls: nope"]) is None


def test_find_route_newer_cli():
    assert find_route(["name: hello", "routes: hello.apps.example.com"]) == "hello.apps.example.com"


def test_find_route_prefers_urls_line():
    assert find_route(["routes: b.example.com", "urls: a.example.com"]) == "a.example.com"


def test_deploy_returns_route(tmp_path: Path):
    cli = FakeCLI(handlers={"app": ok(APP_OUTPUT)})

    route = AppDeployer(cli).deploy("hello", tmp_path / "manifest.yml", tmp_path)

    assert route == "foo.example.com"
    assert cli.calls == [
        ["push", "hello", "-f", str(tmp_path / "manifest.yml"), "-p", str(tmp_path)],
        ["app", "hello"],
    ]


def test_missing_route_line_is_route_not_found(tmp_path: Path):
    cli = FakeCLI(handlers={"push": ok("App started\n"), "app": ok("requested state: started\n")})

    with pytest.raises(RouteNotFoundError):
        AppDeployer(cli).deploy("hello", tmp_path / "manifest.yml", tmp_path)

    assert cli.commands("push")


def test_push_failure_is_push_error(tmp_path: Path):
    cli = FakeCLI(handlers={"push": failed("staging failed")})

    with pytest.raises(PushError):
        AppDeployer(cli).deploy("hello", tmp_path / "manifest.yml", tmp_path)

    assert cli.commands("app") == []


def test_app_query_failure_is_route_not_found():
    cli = FakeCLI(handlers={"app": failed("App hello not found")})
    with pytest.raises(RouteNotFoundError):
        AppDeployer(cli).discover_route("hello")
