"""Environment configuration schema and loader."""

from enum import Enum
from pathlib import Path
from typing import Literal, Optional

import pydantic
import pulumi
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from infra.errors import ConfigError

DEFAULT_ENVIRONMENTS_FILE = Path(__file__).with_name("environments.yaml")


class NatGatewayStrategy(str, Enum):
    """NAT Gateway deployment strategy."""

    ONE_PER_AZ = "one_per_az"
    # One NAT in the first AZ. Cheaper, but private subnets in every AZ
    # lose egress when that AZ is down.
    SINGLE = "single"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class AwsConfig(_Frozen):
    """Region and credentials used by the AWS provider."""

    region: str
    profile: Optional[str] = None
    role_arn: Optional[str] = None
    account_id: Optional[str] = None


class NetworkConfig(_Frozen):
    """VPC configuration."""

    cidr_block: str = Field(default="10.0.0.0/16")
    availability_zones: list[str] = Field(..., min_length=1)
    nat_gateway_strategy: NatGatewayStrategy = Field(default=NatGatewayStrategy.ONE_PER_AZ)

    @field_validator("availability_zones")
    @classmethod
    def _unique_zones(cls, zones: list[str]) -> list[str]:
        if len(set(zones)) != len(zones):
            raise ValueError("availability zones must be unique")
        return zones


class NodeGroupConfig(_Frozen):
    """Configuration for the managed node group."""

    # Only the first instance type is used by the cluster.
    instance_types: list[str] = Field(default=["t3.medium"], min_length=1)
    min_size: int = Field(default=1, ge=1, le=100)
    max_size: int = Field(default=3, ge=1, le=100)
    desired_size: int = Field(default=2, ge=1, le=100)

    @model_validator(mode="after")
    def _check_sizes(self) -> "NodeGroupConfig":
        if not self.min_size <= self.desired_size <= self.max_size:
            raise ValueError("node group sizes must satisfy min <= desired <= max")
        return self


class NodeGroups(_Frozen):
    workers: NodeGroupConfig = Field(default_factory=NodeGroupConfig)


class ClusterConfig(_Frozen):
    """EKS cluster configuration."""

    version: str = Field(default="1.31")
    node_groups: NodeGroups = Field(default_factory=NodeGroups)


class FluxConfig(_Frozen):
    """Flux controller installation."""

    namespace: str = Field(default="flux-system")
    chart: str = Field(default="flux2")
    chart_version: str = Field(default="2.12.1")
    chart_repo: str = Field(default="https://fluxcd-community.github.io/helm-charts")


class CredentialConfig(_Frozen):
    """Git credential whose values are read from stack secrets.

    ``secrets`` maps credential fields (``token``, ``private_key``, ...) to
    the Pulumi config key holding the value.
    """

    name: str
    type: Literal["token", "ssh", "basic"]
    secrets: dict[str, str] = Field(default_factory=dict)


class GitSourceConfig(_Frozen):
    name: str
    url: str
    branch: str = Field(default="main")
    interval: str = Field(default="5m")
    secret_ref: Optional[str] = None


class AppConfig(_Frozen):
    """An application deployed by a Flux Kustomization."""

    name: str
    git_source: str
    path: str
    namespace: str
    interval: str = Field(default="5m")
    prune: bool = Field(default=True)
    target_namespace: Optional[str] = None
    depends_on: list[str] = Field(default_factory=list)


class GitOpsConfig(_Frozen):
    flux: FluxConfig = Field(default_factory=FluxConfig)
    credentials: list[CredentialConfig] = Field(default_factory=list)
    git_sources: list[GitSourceConfig] = Field(default_factory=list)
    apps: list[AppConfig] = Field(default_factory=list)


class EnvironmentConfig(_Frozen):
    """Everything needed to build one environment's stack."""

    aws: AwsConfig
    vpc: NetworkConfig
    eks: ClusterConfig = Field(default_factory=ClusterConfig)
    gitops: GitOpsConfig = Field(default_factory=GitOpsConfig)


def load_environment_table(path: Path | str | None = None) -> dict[str, EnvironmentConfig]:
    """Load and validate the per-environment table from YAML."""
    path = Path(path or DEFAULT_ENVIRONMENTS_FILE)
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read environment table {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must be a mapping with an 'environments' key")

    environments = raw.get("environments")
    if not isinstance(environments, dict) or not environments:
        raise ConfigError(f"{path} must define a non-empty 'environments' mapping")

    # Shared GitOps declarations apply to every environment that has none.
    shared_gitops = raw.get("gitops")
    table: dict[str, EnvironmentConfig] = {}
    for name, data in environments.items():
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Environment '{name}' in {path} must be a mapping")
        data = dict(data)
        if shared_gitops is not None:
            data.setdefault("gitops", shared_gitops)
        try:
            table[name] = EnvironmentConfig.model_validate(data)
        except pydantic.ValidationError as e:
            raise ConfigError(f"Invalid configuration for environment '{name}': {e}") from e
    return table


def resolve_environment(name: str, table: dict[str, EnvironmentConfig]) -> EnvironmentConfig:
    """Pick one environment out of the table."""
    if name not in table:
        raise ConfigError(
            f"Invalid environment: {name}. Valid environments are: {', '.join(table)}"
        )
    return table[name]


def load_stack_config(
    environment: str, table: dict[str, EnvironmentConfig]
) -> EnvironmentConfig:
    """Resolve the environment and apply stack config overrides.

    ``aws:<environment>-profile`` overrides the table's AWS profile.
    """
    env_config = resolve_environment(environment, table)
    profile = pulumi.Config("aws").get(f"{environment}-profile")
    if profile:
        env_config = env_config.model_copy(
            update={"aws": env_config.aws.model_copy(update={"profile": profile})}
        )
    return env_config
