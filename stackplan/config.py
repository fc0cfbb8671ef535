"""
Configuration of the stack that the user declares.

The loaded config is passed explicitly into the graph builder; nothing here
reads the process environment.
"""
from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    PositiveInt,
    ValidationError,
)

from .errors import ConfigError

DEFAULT_IDENTIFIER = "default"

# lowercase so it can be embedded in ECR repository and cluster names
IDENTIFIER_PATTERN = r"^[a-z0-9]+(?:[._-][a-z0-9]+)*$"


class ProfileFlags(BaseModel):
    """Node groups included in the stack."""

    model_config = ConfigDict(extra="forbid")

    repository: bool = True
    repository_encryption: bool = True
    cluster: bool = True
    service: bool = True
    app_task_definition: bool = False


# successive supersets of one another
PROFILES: Dict[str, ProfileFlags] = {
    "network": ProfileFlags(
        repository=False, repository_encryption=False, cluster=False, service=False,
    ),
    "registry": ProfileFlags(repository_encryption=False, cluster=False, service=False),
    "cluster": ProfileFlags(service=False),
    "service": ProfileFlags(),
    "full": ProfileFlags(app_task_definition=True),
}


class NetworkConfig(BaseModel):
    """VPC configuration."""

    model_config = ConfigDict(extra="forbid")

    cidr: str = "10.0.0.0/16"
    max_azs: PositiveInt = 2
    cidr_mask: int = Field(default=24, ge=16, le=28)


class ServiceConfig(BaseModel):
    """Fargate service and container configuration."""

    model_config = ConfigDict(extra="forbid")

    desired_count: NonNegativeInt = 2
    cpu: PositiveInt = 512
    memory: PositiveInt = 1024
    container_port: int = Field(default=80, gt=0, le=65535)
    image: str = Field(default="nginx:latest", min_length=1)
    health_check_path: str = "/"
    health_check_grace_period: NonNegativeInt = 60
    log_retention_days: PositiveInt = 30


class StackConfig(BaseModel):
    """Complete stack configuration."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(default="AwsWorkshopStack", min_length=1)
    identifier: Optional[str] = Field(default=None, pattern=IDENTIFIER_PATTERN)
    account: Optional[str] = None
    region: Optional[str] = None
    profile: str = "service"
    flags: ProfileFlags = Field(default_factory=ProfileFlags)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    service: ServiceConfig = Field(default_factory=ServiceConfig)

    @property
    def resource_suffix(self) -> str:
        return self.identifier or DEFAULT_IDENTIFIER

    @property
    def stack_name(self) -> str:
        if self.identifier is None:
            return self.name
        return f"{self.name}-{self.identifier}"


def _mapping(raw: Any, where: str) -> Dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"'{where}' must be a mapping, got {type(raw).__name__}", [where])
    return dict(raw)


def _config_error(e: ValidationError) -> ConfigError:
    locs = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
    details = "; ".join(f"{loc}: {err['msg']}" for loc, err in zip(locs, e.errors()))
    return ConfigError(f"Invalid stack configuration: {details}", locs)


def _validate(cfg: StackConfig) -> StackConfig:
    f = cfg.flags
    if (f.service or f.app_task_definition) and not f.repository:
        raise ConfigError("Task definitions need the repository node group", ["repository"])
    if f.service and not f.cluster:
        raise ConfigError("The service needs the cluster node group", ["cluster"])
    return cfg


def profile_flags(profile: str) -> ProfileFlags:
    if not isinstance(profile, str) or profile not in PROFILES:
        raise ConfigError(
            f"Unknown profile '{profile}' (choose from {', '.join(PROFILES)})", [str(profile)]
        )
    return PROFILES[profile].model_copy()


def load_stack_config(d: Dict[str, Any], **overrides: Any) -> StackConfig:
    """
    Build a StackConfig from the {"stack": {...}} mapping. Keyword overrides
    (identifier, profile, ...) win over the mapping when they are not None.

    Every malformed value is reported as a ConfigError whose ids are the
    dotted paths of the offending keys.
    """
    if not isinstance(d, dict):
        raise ConfigError("Configuration must be a mapping", ["stack"])
    st = _mapping(d.get("stack"), "stack")
    st.update({k: v for k, v in overrides.items() if v is not None})

    if st.get("profile") is None:
        st["profile"] = "service"
    flags = profile_flags(st["profile"]).model_dump()
    flags.update(_mapping(st.get("flags"), "flags"))
    st["flags"] = flags
    if st.get("identifier") is not None:
        st["identifier"] = str(st["identifier"])

    try:
        cfg = StackConfig.model_validate(st)
    except ValidationError as e:
        raise _config_error(e) from e
    return _validate(cfg)


def load_stack_config_file(path: Union[str, Path], **overrides: Any) -> StackConfig:
    path = Path(path)
    try:
        with path.open() as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigError(f"Config file does not exist: {path}", [str(path)])
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", [str(path)]) from e
    return load_stack_config(raw, **overrides)
