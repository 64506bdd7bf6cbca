"""Mint a brand new slot and token for this node."""

from __future__ import annotations

from loguru import logger

from ringward.config import ClusterConfig
from ringward.core.exceptions import ConfigurationError
from ringward.identity.info import InstanceInfo
from ringward.identity.instance import RingInstance
from ringward.identity.registry import InstanceRegistry
from ringward.identity.token.base import RegistryTokenRetriever
from ringward.identity.token.manager import TokenManager
from ringward.membership.base import Membership

log = logger.bind(component="token")


class NewTokenRetriever(RegistryTokenRetriever):
    """Allocates the next free slot of this node's rack.

    Racks interleave: rack ``i`` owns slots ``i``, ``i + racs``, ``i + 2*racs``...
    Slot ids are shifted by the region offset so regions share one id space.
    Concurrent minters may compute the same slot; the registry lets one win
    and the loser raises RegistryConflictError so the caller can retry on a
    fresh rack map.
    """

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

    def _next_slot(self) -> int:
        my_rack = self._my_rack()
        if my_rack:
            region = self.instance_info.region
            max_slot = max(self.token_manager.slot_position(i.id, region) for i in my_rack)
            return max_slot + self.membership.get_rac_count()
        try:
            return self.config.racs.index(self.instance_info.rac)
        except ValueError:
            raise ConfigurationError(
                f"Rack {self.instance_info.rac} is not one of the configured racs: "
                f"{', '.join(self.config.racs)}"
            ) from None

    def get(self) -> RingInstance | None:
        region = self.instance_info.region
        offset = self.token_manager.region_offset(region)
        slot = self._next_slot()
        token = self.token_manager.create_token(
            slot,
            self.membership.get_rac_count(),
            self.membership.get_rac_membership_size(),
            region,
        )
        log.info("Minting slot {slot} with token {token}", slot=slot, token=token)
        placeholder = RingInstance(
            id=slot + offset,
            app=self.config.app_name,
            instance_id=self.instance_info.instance_id,
            rac=self.instance_info.rac,
            dc=region,
        )
        return self.registry.create(self._claimed(placeholder, token))
