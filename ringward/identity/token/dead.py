"""Take over the slot of a node the cloud no longer reports as alive."""

from __future__ import annotations

from loguru import logger

from ringward.config import ClusterConfig
from ringward.constants import dead_app_name
from ringward.core.exceptions import RegistryConflictError
from ringward.identity.info import InstanceInfo
from ringward.identity.instance import RingInstance
from ringward.identity.registry import InstanceRegistry
from ringward.identity.token.base import RegistryTokenRetriever
from ringward.membership.base import Membership

log = logger.bind(component="token")


class DeadTokenRetriever(RegistryTokenRetriever):
    """Claims the first dead slot of this node's rack.

    The dead record is copied to the ``<app>-dead`` namespace and its id and
    token are reissued to this node. Slots lost to a concurrent claimer are
    skipped. Liveness comes from a single membership snapshot per ``get``.
    """

    def __init__(
        self,
        config: ClusterConfig,
        instance_info: InstanceInfo,
        registry: InstanceRegistry,
        membership: Membership,
    ) -> None:
        super().__init__(config, instance_info, registry)
        self.membership = membership
        self._replace_ip: str | None = None

    @property
    def replace_ip(self) -> str | None:
        return self._replace_ip

    def _candidates(self) -> list[RingInstance]:
        others = [
            instance
            for instance in self._my_rack()
            if not instance.is_placeholder
            and instance.instance_id != self.instance_info.instance_id
        ]
        if not others:
            return []
        live = set(self.membership.live_instance_ids())
        return [instance for instance in others if instance.instance_id not in live]

    def get(self) -> RingInstance | None:
        for dead in self._candidates():
            log.info(
                "Found dead instance {iid} holding slot {id} with token {token}",
                iid=dead.instance_id,
                id=dead.id,
                token=dead.token,
            )
            # Record the death first so a failure below never loses the slot
            self.registry.create(dead.moved_to(dead_app_name(dead.app)))
            try:
                self.registry.delete(dead)
            except RegistryConflictError as e:
                log.info("Slot {id} was claimed concurrently: {err}", id=dead.id, err=e)
                continue

            try:
                claimed = self.registry.create(self._claimed(dead, dead.token))
            except RegistryConflictError as e:
                log.warning("Could not claim slot {id}, restoring it: {err}", id=dead.id, err=e)
                self._restore(dead)
                continue

            self._replace_ip = dead.host_ip or None
            return claimed

        return None
