"""Deployment descriptor loading and application manifest rewriting."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import structlog
import yaml
from pydantic import ValidationError as ModelValidationError

from deploy_to_cf.core.exceptions import ManifestError, ValidationError
from deploy_to_cf.core.models import DeploymentDescriptor, SourceRef
from deploy_to_cf.source.github import GitHubClient

logger = structlog.get_logger()


def parse_descriptor(raw: bytes | str) -> DeploymentDescriptor:
    """Parse manifest.yml text into its `deployment` descriptor."""
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ManifestError(f"Manifest is not valid YAML: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ManifestError("Manifest must be a mapping")

    section = data.get("deployment") or {}
    if not isinstance(section, dict):
        raise ManifestError("Manifest 'deployment' section must be a mapping")

    try:
        return DeploymentDescriptor.model_validate(section)
    except ModelValidationError as e:
        raise ManifestError(f"Invalid deployment descriptor: {e}") from e


def load_descriptor(client: GitHubClient, source: SourceRef, filename: str = "manifest.yml") -> DeploymentDescriptor:
    """Fetch and parse the deployment descriptor at `source.ref`."""
    logger.info("Loading deployment descriptor", source=source.slug, filename=filename)
    raw = client.get_file(source.owner, source.repo, filename, source.ref)
    descriptor = parse_descriptor(raw)
    logger.info(
        "Deployment descriptor loaded",
        source=source.slug,
        env=sorted(descriptor.env),
        services=[s.label for s in descriptor.services],
    )
    return descriptor


def bind_parameters(descriptor: DeploymentDescriptor, params: Mapping[str, Any]) -> DeploymentDescriptor:
    """Return a copy of descriptor carrying the operator-supplied values.

    Every declared variable takes `params[name]` (blank when absent);
    undeclared parameters are ignored.

    Raises:
        ValidationError: listing every required variable left blank.
    """
    env = {}
    for name, spec in descriptor.env.items():
        value = params.get(name)
        value = "" if value is None else str(value).strip()
        env[name] = spec.model_copy(update={"value": value})

    bound = descriptor.model_copy(update={"env": env})
    missing = bound.missing_required()
    if missing:
        raise ValidationError(f"Missing required parameters: {', '.join(missing)}", missing=missing)
    return bound


class AppManifest:
    """The application's own Cloud Foundry manifest inside the extracted tree."""

    def __init__(self, data: Dict[str, Any], path: Optional[Path] = None):
        self.data = data
        self.path = path

    @classmethod
    def load(cls, path: Path) -> "AppManifest":
        path = Path(path)
        if not path.exists():
            raise ManifestError(f"Application manifest not found: {path.name}")
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ManifestError(f"Failed to read application manifest: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ManifestError("Application manifest must be a mapping")
        return cls(data, path)

    @property
    def applications(self) -> list:
        apps = self.data.get("applications")
        if isinstance(apps, list):
            return [app for app in apps if isinstance(app, dict)]
        return []

    @property
    def app_name(self) -> Optional[str]:
        for app in self.applications:
            if app.get("name"):
                return str(app["name"])
        return None

    def set_env(self, name: str, value: str) -> None:
        """Set one environment entry on every application (or the top level)."""
        holders = self.applications or [self.data]
        for holder in holders:
            env = holder.get("env")
            if not isinstance(env, dict):
                env = {}
                holder["env"] = env
            env[name] = value

    def apply(self, values: Mapping[str, str]) -> None:
        for name, value in values.items():
            self.set_env(name, value)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.data)

    def save(self, path: Optional[Path] = None) -> Path:
        target = path or self.path
        if target is None:
            raise ManifestError("No path to save application manifest")
        target = Path(target)
        try:
            with open(target, "w") as f:
                yaml.safe_dump(self.data, f, sort_keys=False, default_flow_style=False)
        except OSError as e:
            raise ManifestError(f"Failed to write application manifest: {e}") from e
        return target
