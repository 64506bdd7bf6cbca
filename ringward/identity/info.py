"""Read-only description of the local compute instance."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ringward.constants import InstanceEnvironment
from ringward.core.exceptions import ConfigurationError


@dataclass(frozen=True, slots=True)
class InstanceInfo:
    """Immutable facts about the instance this sidecar runs on.

    Args:
        instance_id: Cloud instance id (e.g. ``i-0abc...``).
        region: Region, also used as the ring's data center name.
        rac: Availability zone the instance lives in.
        environment: Classic or VPC networking.
        asg_name: Autoscaling group that launched the instance.
        vpc_id: VPC id, required when ``environment`` is VPC.
        host_name: Public or private DNS name.
        host_ip: Address peers use to reach this node.
    """

    instance_id: str
    region: str
    rac: str
    environment: InstanceEnvironment = InstanceEnvironment.VPC
    asg_name: str = ""
    vpc_id: str = ""
    host_name: str = ""
    host_ip: str = ""

    @property
    def is_classic(self) -> bool:
        return self.environment == InstanceEnvironment.CLASSIC

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InstanceInfo:
        missing = [k for k in ("instance_id", "region", "rac") if not data.get(k)]
        if missing:
            raise ConfigurationError(f"[instance] missing required fields: {', '.join(missing)}")

        raw_env = str(data.get("environment", InstanceEnvironment.VPC)).lower()
        try:
            environment = InstanceEnvironment(raw_env)
        except ValueError:
            valid = ", ".join(e.value for e in InstanceEnvironment)
            raise ConfigurationError(
                f"Unknown instance environment '{raw_env}'. Valid: {valid}"
            ) from None

        return cls(
            instance_id=str(data["instance_id"]),
            region=str(data["region"]),
            rac=str(data["rac"]),
            environment=environment,
            asg_name=str(data.get("asg_name", "")),
            vpc_id=str(data.get("vpc_id", "")),
            host_name=str(data.get("host_name", "")),
            host_ip=str(data.get("host_ip", "")),
        )
