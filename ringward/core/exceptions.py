"""Custom exception hierarchy for Ringward.

All ringward-specific exceptions inherit from RingwardError, enabling
callers to catch every sidecar failure with a single except clause.
"""

from __future__ import annotations


class RingwardError(Exception):
    """Base exception for all Ringward errors."""


class ConfigurationError(RingwardError):
    """Raised for invalid configuration or missing required settings."""


class MembershipError(RingwardError):
    """Raised when a cloud control plane call fails.

    The provider never retries internally; callers decide the policy.
    """


class SecurityGroupNotFoundError(MembershipError, ConfigurationError):
    """Raised when no security group matches the ACL group name in the VPC."""

    def __init__(self, group_name: str, vpc_id: str) -> None:
        self.group_name = group_name
        self.vpc_id = vpc_id
        super().__init__(
            f"Unable to resolve group-id for group-name={group_name} vpc-id={vpc_id}"
        )


class UnsupportedMembershipOperationError(RingwardError):
    """Raised when a membership strategy cannot answer a question."""


class RegistryConflictError(RingwardError):
    """Raised when a conditional registry write loses a race."""


class BootstrapExhaustedError(RingwardError):
    """Raised when no acquisition strategy produced an identity for this node."""

    def __init__(self, instance_id: str, attempted: tuple[str, ...]) -> None:
        self.instance_id = instance_id
        self.attempted = attempted
        super().__init__(
            f"Unable to acquire an identity for {instance_id} "
            f"(tried: {', '.join(attempted) or 'none'})"
        )
