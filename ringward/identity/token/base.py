"""Contracts of the token acquisition strategies."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from loguru import logger

from ringward.config import ClusterConfig
from ringward.core.exceptions import RegistryConflictError
from ringward.identity.info import InstanceInfo
from ringward.identity.instance import RingInstance
from ringward.identity.rack_map import RackMap
from ringward.identity.registry import InstanceRegistry

log = logger.bind(component="token")


@runtime_checkable
class TokenRetriever(Protocol):
    """One way of producing this node's RingInstance.

    ``set_rack_map`` is always called with a freshly populated map right
    before ``get``.
    """

    def set_rack_map(self, rack_map: RackMap) -> None: ...

    def get(self) -> RingInstance | None: ...


@runtime_checkable
class ReplacingTokenRetriever(TokenRetriever, Protocol):
    """Retriever that takes over a dead node and knows its address."""

    @property
    def replace_ip(self) -> str | None: ...


class RegistryTokenRetriever:
    """Shared plumbing of the registry-backed retrievers."""

    def __init__(
        self,
        config: ClusterConfig,
        instance_info: InstanceInfo,
        registry: InstanceRegistry,
    ) -> None:
        self.config = config
        self.instance_info = instance_info
        self.registry = registry
        self.rack_map = RackMap()

    def set_rack_map(self, rack_map: RackMap) -> None:
        self.rack_map = rack_map

    def _my_rack(self) -> list[RingInstance]:
        """Records of this node's rack and region, in slot order."""
        return [
            instance
            for instance in self.rack_map.get(self.instance_info.rac)
            if instance.dc in ("", self.instance_info.region)
        ]

    def _restore(self, record: RingInstance) -> None:
        """Put back a record removed for a claim that then failed."""
        try:
            self.registry.create(record)
        except RegistryConflictError as e:
            log.warning("Slot {id} was taken before it could be restored: {err}", id=record.id, err=e)

    def _claimed(self, slot: RingInstance, token: str) -> RingInstance:
        """Live record giving ``slot`` to this node."""
        return RingInstance(
            id=slot.id,
            app=self.config.app_name,
            instance_id=self.instance_info.instance_id,
            rac=self.instance_info.rac,
            dc=self.instance_info.region,
            host_name=self.instance_info.host_name,
            host_ip=self.instance_info.host_ip,
            token=token,
        )
