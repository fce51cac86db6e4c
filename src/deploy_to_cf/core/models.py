"""Core data models for deploy-to-cf."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from deploy_to_cf.core.exceptions import ValidationError


class EnvVarSpec(BaseModel):
    """Environment variable declared by a deployment descriptor."""

    model_config = ConfigDict(frozen=True)

    description: str = Field("", description="Human-readable description")
    required: bool = Field(False, description="Whether a non-empty value is required")
    value: str = Field("", description="Operator-supplied value")

    @field_validator("description", "value", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        """YAML leaves unset scalars as None and numbers as numbers."""
        if v is None:
            return ""
        if isinstance(v, bool):
            return "true" if v else "false"
        return str(v)


class ServiceSpec(BaseModel):
    """Backing service declared by a deployment descriptor."""

    model_config = ConfigDict(frozen=True)

    service: str = Field(..., min_length=1, description="Service offering")
    plan: str = Field(..., min_length=1, description="Service plan")
    label: str = Field(..., min_length=1, description="Service instance name")
    tags: List[str] = Field(default_factory=list, description="Instance tags")
    config: Dict[str, Any] = Field(default_factory=dict, description="Arbitrary JSON parameters")

    @field_validator("tags", mode="before")
    @classmethod
    def dedupe_tags(cls, v: Any) -> List[str]:
        if v is None:
            return []
        seen: List[str] = []
        for tag in v:
            tag = str(tag)
            if tag not in seen:
                seen.append(tag)
        return seen

    @field_validator("config", mode="before")
    @classmethod
    def default_config(cls, v: Any) -> Dict[str, Any]:
        return {} if v is None else v


class DeploymentDescriptor(BaseModel):
    """The `deployment` section of a repository's manifest.yml."""

    model_config = ConfigDict(frozen=True)

    env: Dict[str, EnvVarSpec] = Field(default_factory=dict)
    services: List[ServiceSpec] = Field(default_factory=list)

    @field_validator("env", mode="before")
    @classmethod
    def default_env(cls, v: Any) -> Dict[str, Any]:
        if v is None:
            return {}
        # `NAME:` with no body declares an optional variable
        return {name: ({} if spec is None else spec) for name, spec in v.items()}

    @field_validator("services", mode="before")
    @classmethod
    def default_services(cls, v: Any) -> List[Any]:
        return [] if v is None else v

    @model_validator(mode="after")
    def check_unique_labels(self) -> "DeploymentDescriptor":
        labels = [service.label for service in self.services]
        duplicates = sorted({label for label in labels if labels.count(label) > 1})
        if duplicates:
            raise ValueError(f"Duplicate service labels: {', '.join(duplicates)}")
        return self

    def missing_required(self) -> List[str]:
        """Names of required variables that still have no value."""
        return sorted(name for name, spec in self.env.items() if spec.required and not spec.value)

    def values(self) -> Dict[str, str]:
        return {name: spec.value for name, spec in self.env.items()}


class SourceRef(BaseModel):
    """A GitHub repository at a revision."""

    owner: str = Field(..., min_length=1)
    repo: str = Field(..., min_length=1)
    ref: str = Field(..., min_length=1)

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}@{self.ref}"


class Target(BaseModel):
    """Organization and space a deployment lands in."""

    org_guid: str
    org_name: str
    space_guid: str
    space_name: str

    @classmethod
    def parse(cls, raw: str) -> "Target":
        """Parse the `orgGUID:orgName:spaceGUID:spaceName` form encoding."""
        parts = (raw or "").split(":")
        if len(parts) != 4 or not all(parts):
            raise ValidationError(f"Invalid target: {raw!r}", missing=["target"])
        return cls(org_guid=parts[0], org_name=parts[1], space_guid=parts[2], space_name=parts[3])

    def encode(self) -> str:
        return ":".join([self.org_guid, self.org_name, self.space_guid, self.space_name])


class OAuthToken(BaseModel):
    """OAuth token pair issued for the current session."""

    access_token: str = Field(..., min_length=1)
    token_type: str = "bearer"
    refresh_token: str = ""
    expiry: Optional[str] = None

    @property
    def authorization(self) -> str:
        return f"{self.token_type} {self.access_token}"

    def __repr__(self) -> str:
        return f"OAuthToken(token_type={self.token_type!r}, access_token='***')"

    __str__ = __repr__


class Org(BaseModel):
    guid: str
    name: str


class Space(BaseModel):
    guid: str
    name: str
    org_guid: str
    org_name: str = ""
