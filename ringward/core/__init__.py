"""Core building blocks shared by every Ringward module."""

from ringward.core.exceptions import (
    BootstrapExhaustedError,
    ConfigurationError,
    MembershipError,
    RegistryConflictError,
    RingwardError,
    SecurityGroupNotFoundError,
    UnsupportedMembershipOperationError,
)

__all__ = [
    "BootstrapExhaustedError",
    "ConfigurationError",
    "MembershipError",
    "RegistryConflictError",
    "RingwardError",
    "SecurityGroupNotFoundError",
    "UnsupportedMembershipOperationError",
]
