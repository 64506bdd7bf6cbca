"""Claim a placeholder slot reserved ahead of time by deployment tooling."""

from __future__ import annotations

from loguru import logger

from ringward.config import ClusterConfig
from ringward.core.exceptions import RegistryConflictError
from ringward.identity.info import InstanceInfo
from ringward.identity.instance import RingInstance
from ringward.identity.registry import InstanceRegistry
from ringward.identity.token.base import RegistryTokenRetriever
from ringward.identity.token.manager import TokenManager
from ringward.membership.base import Membership

log = logger.bind(component="token")


class PreGeneratedTokenRetriever(RegistryTokenRetriever):
    def __init__(
        self,
        config: ClusterConfig,
        instance_info: InstanceInfo,
        registry: InstanceRegistry,
        membership: Membership,
        token_manager: TokenManager,
    ) -> None:
        super().__init__(config, instance_info, registry)
        self.membership = membership
        self.token_manager = token_manager

    def _token_for(self, slot: RingInstance) -> str:
        if slot.token:
            return slot.token
        region = self.instance_info.region
        return self.token_manager.create_token(
            self.token_manager.slot_position(slot.id, region),
            self.membership.get_rac_count(),
            self.membership.get_rac_membership_size(),
            region,
        )

    def get(self) -> RingInstance | None:
        for slot in self._my_rack():
            if not slot.is_placeholder:
                continue
            token = self._token_for(slot)
            log.info("Found pre-generated slot {id} with token {token}", id=slot.id, token=token)
            try:
                self.registry.delete(slot)
            except RegistryConflictError as e:
                log.info("Placeholder {id} was claimed concurrently: {err}", id=slot.id, err=e)
                continue

            try:
                return self.registry.create(self._claimed(slot, token))
            except RegistryConflictError as e:
                log.warning("Could not claim placeholder {id}, restoring it: {err}", id=slot.id, err=e)
                self._restore(slot)

        return None
