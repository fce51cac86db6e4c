"""Isolated cf CLI configuration for a single deployment run."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import structlog

from deploy_to_cf.core.config import Settings
from deploy_to_cf.core.exceptions import SessionError
from deploy_to_cf.core.models import OAuthToken, Target

logger = structlog.get_logger()

CONFIG_VERSION = 3


class TargetSession:
    """A disposable CF_HOME carrying one run's token and target.

    The directory path is the only coupling between the session and the cf
    invocations that use it.
    """

    def __init__(self, home: Path, settings: Settings, token: OAuthToken, target: Target):
        self.home = Path(home)
        self.settings = settings
        self.token = token
        self.target = target

    @property
    def config_dir(self) -> Path:
        return self.home / ".cf"

    @property
    def config_path(self) -> Path:
        return self.config_dir / "config.json"

    def config_data(self) -> Dict[str, Any]:
        """cf CLI v3 config.json document."""
        return {
            "ConfigVersion": CONFIG_VERSION,
            "Target": self.settings.cf_url,
            "APIVersion": "",
            "AuthorizationEndpoint": self.settings.auth_url,
            "UaaEndpoint": self.settings.token_url,
            "RoutingAPIEndpoint": "",
            "DopplerEndPoint": "",
            "AccessToken": self.token.authorization,
            "RefreshToken": self.token.refresh_token,
            "UAAOAuthClient": self.settings.client_id,
            "UAAOAuthClientSecret": self.settings.client_secret,
            "SSHOAuthClient": "",
            "OrganizationFields": {
                "GUID": self.target.org_guid,
                "Name": self.target.org_name,
                "QuotaDefinition": {},
            },
            "SpaceFields": {
                "GUID": self.target.space_guid,
                "Name": self.target.space_name,
                "AllowSSH": False,
            },
            "SSLDisabled": False,
            "AsyncTimeout": 0,
            "Trace": "",
            "ColorEnabled": "false",
            "Locale": "",
            "PluginRepos": [],
            "MinCLIVersion": "",
            "MinRecommendedCLIVersion": "",
        }

    def write_config(self) -> Path:
        """Write config.json under the session home, creating parents."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True, mode=0o755)
            with open(self.config_path, "w") as f:
                json.dump(self.config_data(), f, indent=2)
            self.config_path.chmod(0o600)
        except OSError as e:
            raise SessionError(f"Failed to write cf session config: {e}") from e

        logger.info(
            "Session config written",
            cf_home=str(self.home),
            org=self.target.org_name,
            space=self.target.space_name,
        )
        return self.config_path
