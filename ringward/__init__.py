"""Ringward - stable token-ring identity for ephemeral cloud instances.

Example:

    from injector import Injector
    from ringward import InstanceIdentity, RingwardModule, resolve_settings

    settings = resolve_settings()
    injector = Injector([RingwardModule(settings.cluster, settings.instance, registry)])
    identity = injector.get(InstanceIdentity)   # blocks until bootstrapped

    identity.token
    identity.get_seeds()
"""

from ringward.config import ClusterConfig, Settings, load_config, resolve_settings
from ringward.core.exceptions import (
    BootstrapExhaustedError,
    ConfigurationError,
    MembershipError,
    RegistryConflictError,
    RingwardError,
    SecurityGroupNotFoundError,
    UnsupportedMembershipOperationError,
)
from ringward.credentials import (
    AccountCredentials,
    AssumeRoleCredential,
    CredentialProvider,
    InstanceProfileCredential,
    PropertiesFileCredential,
)
from ringward.identity import (
    InMemoryInstanceRegistry,
    InstanceInfo,
    InstanceRegistry,
    RackMap,
    RingInstance,
)
from ringward.identity.identity import InstanceIdentity
from ringward.logging import LogConfig, setup_logging, teardown_logging
from ringward.membership import (
    ASGMembership,
    AWSMembership,
    EC2InstanceMembership,
    Membership,
)
from ringward.module import RingwardModule

__all__ = [
    "ASGMembership",
    "AWSMembership",
    "AccountCredentials",
    "AssumeRoleCredential",
    "BootstrapExhaustedError",
    "ClusterConfig",
    "ConfigurationError",
    "CredentialProvider",
    "EC2InstanceMembership",
    "InMemoryInstanceRegistry",
    "InstanceIdentity",
    "InstanceInfo",
    "InstanceProfileCredential",
    "InstanceRegistry",
    "LogConfig",
    "Membership",
    "MembershipError",
    "PropertiesFileCredential",
    "RackMap",
    "RegistryConflictError",
    "RingInstance",
    "RingwardError",
    "RingwardModule",
    "SecurityGroupNotFoundError",
    "Settings",
    "UnsupportedMembershipOperationError",
    "load_config",
    "resolve_settings",
    "setup_logging",
    "teardown_logging",
]
