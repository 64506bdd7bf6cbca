"""TOML-based sidecar configuration.

Loads ~/.ringward/defaults.toml (global) and ringward.toml (project),
merges them, applies RINGWARD_* environment overrides and resolves the
result into frozen configuration objects.

Example ringward.toml:

    [cluster]
    app_name = "cass_orders"
    racs = ["us-east-1a", "us-east-1c", "us-east-1d"]
    membership = "asg"
    acl_group_name = "cass_orders"

    [instance]
    instance_id = "i-0abc"
    region = "us-east-1"
    rac = "us-east-1a"
    asg_name = "cass_orders-useast1a"
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Annotated, Any

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict, SettingsError

from ringward.constants import (
    NEW_TOKEN_ATTEMPTS,
    NEW_TOKEN_DELAY_SECONDS,
    SSL_STORAGE_PORT,
    STORAGE_PORT,
    MembershipType,
)
from ringward.core.exceptions import ConfigurationError
from ringward.identity.info import InstanceInfo
from ringward.logging import LogConfig

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".ringward" / "defaults.toml"
PROJECT_CONFIG_NAME = "ringward.toml"
ENV_PREFIX = "RINGWARD_"


@dataclass(frozen=True, slots=True)
class ClusterConfig:
    """Cluster-wide settings shared by every node of one ring.

    Args:
        app_name: Logical cluster name, the registry namespace.
        racs: Ordered rack labels. Order decides the first slot of each rack.
        seeds: Static seeds. When set, topology-based seed selection is skipped.
        multi_dc: Cross-region cluster; seeds are addressed by IP instead of DNS.
        auto_bootstrap: Cluster already running; never offer the local node as seed.
        create_new_token: Allow minting new tokens when nothing can be adopted.
        dual_account: Peers run under two accounts (classic and VPC).
        membership: Live peer source, ``asg`` or ``ec2``.
        sibling_asg_names: Extra autoscaling groups that belong to this rack.
        acl_group_name: Security group holding the peer ingress rules.
        storage_port: Inter-node storage port.
        ssl_storage_port: Inter-node TLS storage port.
        new_token_attempts: Attempts of the new-token race.
        new_token_delay: Seconds between new-token attempts.
        credential_file: Properties file with static keys. Instance profile when None.
        cross_account_role_arn: Role assumed to read the other account's peers.
    """

    app_name: str
    racs: tuple[str, ...]
    seeds: tuple[str, ...] = ()
    multi_dc: bool = False
    auto_bootstrap: bool = True
    create_new_token: bool = True
    dual_account: bool = False
    membership: MembershipType = MembershipType.ASG
    sibling_asg_names: tuple[str, ...] = ()
    acl_group_name: str = ""
    storage_port: int = STORAGE_PORT
    ssl_storage_port: int = SSL_STORAGE_PORT
    new_token_attempts: int = NEW_TOKEN_ATTEMPTS
    new_token_delay: float = NEW_TOKEN_DELAY_SECONDS
    credential_file: str | None = None
    cross_account_role_arn: str | None = None

    def __post_init__(self) -> None:
        if not self.app_name:
            raise ConfigurationError("[cluster] app_name must not be empty")
        if not self.racs:
            raise ConfigurationError("[cluster] racs must list at least one rack")
        if self.new_token_attempts < 1:
            raise ConfigurationError("[cluster] new_token_attempts must be >= 1")
        if self.new_token_delay < 0:
            raise ConfigurationError("[cluster] new_token_delay must be >= 0")

    @property
    def group_name(self) -> str:
        """Security group name, defaulting to the app name."""
        return self.acl_group_name or self.app_name

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ClusterConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"[cluster] unknown keys: {', '.join(unknown)}")

        values = dict(data)
        for key in ("racs", "seeds", "sibling_asg_names"):
            if key in values:
                values[key] = _as_tuple(values[key])
        if "membership" in values:
            try:
                values["membership"] = MembershipType(str(values["membership"]).lower())
            except ValueError:
                valid = ", ".join(m.value for m in MembershipType)
                raise ConfigurationError(
                    f"Unknown membership type '{values['membership']}'. Valid: {valid}"
                ) from None
        try:
            return cls(**values)
        except TypeError as e:
            raise ConfigurationError(f"[cluster] {e}") from e


@dataclass(frozen=True, slots=True)
class Settings:
    """Everything the sidecar reads from configuration."""

    cluster: ClusterConfig
    instance: InstanceInfo | None
    logging: LogConfig


def _as_tuple(value: Any) -> tuple[str, ...]:
    match value:
        case str():
            return tuple(v.strip() for v in value.split(",") if v.strip())
        case list() | tuple():
            return tuple(str(v).strip() for v in value if str(v).strip())
        case None:
            return ()
        case _:
            raise ConfigurationError(f"Expected a list or comma separated string, got {value!r}")


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


class ClusterEnvironment(BaseSettings):
    """``RINGWARD_<FIELD>`` overrides of the ``[cluster]`` table.

    Unset variables stay None and leave the file values alone. Sequences
    are comma separated.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )

    app_name: str | None = None
    racs: Annotated[tuple[str, ...] | None, NoDecode] = None
    seeds: Annotated[tuple[str, ...] | None, NoDecode] = None
    multi_dc: bool | None = None
    auto_bootstrap: bool | None = None
    create_new_token: bool | None = None
    dual_account: bool | None = None
    membership: str | None = None
    sibling_asg_names: Annotated[tuple[str, ...] | None, NoDecode] = None
    acl_group_name: str | None = None
    storage_port: int | None = None
    ssl_storage_port: int | None = None
    new_token_attempts: int | None = None
    new_token_delay: float | None = None
    credential_file: str | None = None
    cross_account_role_arn: str | None = None

    @field_validator("racs", "seeds", "sibling_asg_names", mode="before")
    @classmethod
    def _split(cls, value: Any) -> Any:
        return _as_tuple(value) if isinstance(value, str) else value


def _env_overrides() -> RawConfig:
    try:
        env = ClusterEnvironment()
    except ValidationError as e:
        problems = "; ".join(
            f"{ENV_PREFIX}{str(err['loc'][0]).upper()}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid environment override: {problems}") from e
    except SettingsError as e:
        raise ConfigurationError(f"Invalid environment override: {e}") from e
    return env.model_dump(exclude_none=True)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    """Merge global file, project file and environment, in increasing precedence."""
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    env_cfg = _env_overrides()
    if env_cfg:
        merged = _deep_merge(merged, {"cluster": env_cfg})

    merged.setdefault("cluster", {})
    merged.setdefault("instance", {})
    merged.setdefault("logging", {})
    return merged


def resolve_settings(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> Settings:
    config = load_config(project_dir=project_dir, global_path=global_path)

    raw_instance = config["instance"]
    instance = InstanceInfo.from_dict(raw_instance) if raw_instance else None

    try:
        log_config = LogConfig.from_dict(config["logging"])
    except TypeError as e:
        raise ConfigurationError(f"[logging] {e}") from e

    return Settings(
        cluster=ClusterConfig.from_dict(config["cluster"]),
        instance=instance,
        logging=log_config,
    )
