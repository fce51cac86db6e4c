"""
Pytest configuration and fixtures for deploy-to-cf tests.
"""

import io
import tarfile
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import pytest
import yaml

from deploy_to_cf.core.config import Settings
from deploy_to_cf.core.models import OAuthToken, Target
from deploy_to_cf.deploy.cli import CommandResult


@pytest.fixture(autouse=True)
def isolate_settings_env(monkeypatch):
    """Keep the developer's environment out of Settings()."""
    for name in ("SERVICE_TIMEOUT", "POLL_INTERVAL", "CF_URL", "STATUS_QUERY", "CLEANUP_SERVICES_ON_FAILURE", "CF_HOME"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        cf_url="https://api.cf.test",
        auth_url="https://login.cf.test/oauth/authorize",
        token_url="https://uaa.cf.test/oauth/token",
        client_id="cf-client",
        client_secret="client-secret",
        service_timeout=30,
        poll_interval=5,
    )


@pytest.fixture
def token() -> OAuthToken:
    return OAuthToken(access_token="access-123", token_type="bearer", refresh_token="refresh-456")


@pytest.fixture
def target() -> Target:
    return Target(org_guid="org-guid", org_name="my-org", space_guid="space-guid", space_name="dev")


Handler = Union[CommandResult, Callable[[List[str]], CommandResult]]


class FakeCLI:
    """Stands in for CloudFoundryCLI; answers by command name and records calls."""

    def __init__(self, home: Optional[Path] = None, handlers: Optional[Dict[str, Handler]] = None):
        self.home = home
        self.handlers = handlers or {}
        self.calls: List[List[str]] = []

    def run(self, *args: str) -> CommandResult:
        argv = [str(a) for a in args]
        self.calls.append(argv)
        handler = self.handlers.get(argv[0])
        if handler is None:
            return CommandResult(argv, 0)
        if callable(handler):
            return handler(argv)
        return handler

    def commands(self, name: str) -> List[List[str]]:
        return [call for call in self.calls if call[0] == name]


def ok(stdout: str = "") -> CommandResult:
    return CommandResult(["cf"], 0, stdout)


def failed(stderr: str = "FAILED") -> CommandResult:
    return CommandResult(["cf"], 1, "", stderr)


def make_tarball(entries: Dict[str, Union[bytes, None]], modes: Optional[Dict[str, int]] = None) -> bytes:
    """Build a .tar.gz in memory. A None value is a directory entry."""
    modes = modes or {}
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, data in entries.items():
            info = tarfile.TarInfo(name)
            if data is None:
                info.type = tarfile.DIRTYPE
                info.mode = modes.get(name, 0o755)
                tar.addfile(info)
            else:
                info.size = len(data)
                info.mode = modes.get(name, 0o644)
                tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def app_tarball(manifest: dict, root: str = "owner-repo-abc123") -> bytes:
    return make_tarball({
        f"{root}/": None,
        f"{root}/manifest.yml": yaml.safe_dump(manifest).encode(),
        f"{root}/app.py": b"print('hello')\n",
    })


@pytest.fixture
def fake_cli_factory():
    """Factory that records the FakeCLI created for each session home."""
    created: List[FakeCLI] = []

    def build(handlers: Optional[Dict[str, Handler]] = None):
        def factory(home: Path) -> FakeCLI:
            cli = FakeCLI(home, handlers)
            created.append(cli)
            return cli
        return factory

    build.created = created
    return build
