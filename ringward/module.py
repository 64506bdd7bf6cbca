"""Central DI module for Ringward.

Wires configuration, credentials, the membership strategy, the token
retrievers and a bootstrapped InstanceIdentity.

Usage:
    injector = Injector([RingwardModule(settings.cluster, instance_info, registry)])
    identity = injector.get(InstanceIdentity)
"""

from __future__ import annotations

from pathlib import Path

from injector import Binder, Module, provider, singleton

from ringward.config import ClusterConfig
from ringward.constants import MembershipType
from ringward.credentials import (
    AccountCredentials,
    AssumeRoleCredential,
    CredentialProvider,
    InstanceProfileCredential,
    PropertiesFileCredential,
)
from ringward.identity.identity import InstanceIdentity
from ringward.identity.info import InstanceInfo
from ringward.identity.registry import InMemoryInstanceRegistry, InstanceRegistry
from ringward.identity.token import (
    DeadTokenRetriever,
    NewTokenRetriever,
    PreGeneratedTokenRetriever,
    TokenManager,
)
from ringward.membership import ASGMembership, AWSMembership, EC2InstanceMembership


class RingwardModule(Module):
    """Binds the per-process inputs and provides everything built from them."""

    def __init__(
        self,
        config: ClusterConfig,
        instance_info: InstanceInfo,
        registry: InstanceRegistry | None = None,
    ) -> None:
        self._config = config
        self._instance_info = instance_info
        self._registry = registry or InMemoryInstanceRegistry()

    def configure(self, binder: Binder) -> None:
        binder.bind(ClusterConfig, to=self._config)
        binder.bind(InstanceInfo, to=self._instance_info)
        binder.bind(InstanceRegistry, to=self._registry)  # type: ignore[type-abstract]

    @singleton
    @provider
    def provide_credentials(self, config: ClusterConfig, info: InstanceInfo) -> AccountCredentials:
        own: CredentialProvider
        if config.credential_file:
            own = PropertiesFileCredential(Path(config.credential_file), info.region)
        else:
            own = InstanceProfileCredential(info.region)

        if config.dual_account and config.cross_account_role_arn:
            cross = AssumeRoleCredential(own, config.cross_account_role_arn, info.region)
            return AccountCredentials(own=own, cross=cross)
        return AccountCredentials.single(own)

    @singleton
    @provider
    def provide_membership(
        self,
        config: ClusterConfig,
        credentials: AccountCredentials,
        info: InstanceInfo,
    ) -> AWSMembership:
        match config.membership:
            case MembershipType.EC2:
                return EC2InstanceMembership(config, credentials, info)
            case _:
                return ASGMembership(config, credentials, info)

    @singleton
    @provider
    def provide_token_manager(self) -> TokenManager:
        return TokenManager()

    @singleton
    @provider
    def provide_dead_token_retriever(
        self,
        config: ClusterConfig,
        info: InstanceInfo,
        registry: InstanceRegistry,
        membership: AWSMembership,
    ) -> DeadTokenRetriever:
        return DeadTokenRetriever(config, info, registry, membership)

    @singleton
    @provider
    def provide_pregenerated_token_retriever(
        self,
        config: ClusterConfig,
        info: InstanceInfo,
        registry: InstanceRegistry,
        membership: AWSMembership,
        token_manager: TokenManager,
    ) -> PreGeneratedTokenRetriever:
        return PreGeneratedTokenRetriever(config, info, registry, membership, token_manager)

    @singleton
    @provider
    def provide_new_token_retriever(
        self,
        config: ClusterConfig,
        info: InstanceInfo,
        registry: InstanceRegistry,
        membership: AWSMembership,
        token_manager: TokenManager,
    ) -> NewTokenRetriever:
        return NewTokenRetriever(config, info, registry, membership, token_manager)

    @singleton
    @provider
    def provide_identity(
        self,
        config: ClusterConfig,
        info: InstanceInfo,
        registry: InstanceRegistry,
        membership: AWSMembership,
        dead: DeadTokenRetriever,
        pregenerated: PreGeneratedTokenRetriever,
        new: NewTokenRetriever,
    ) -> InstanceIdentity:
        """Bootstrapped identity; nothing else may run before this resolves."""
        identity = InstanceIdentity(config, info, registry, membership, dead, pregenerated, new)
        identity.bootstrap()
        return identity


__all__ = [
    "RingwardModule",
]
