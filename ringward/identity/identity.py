"""Central place that creates and exposes this node's ring identity.

Bootstrap runs once at startup and blocks the sidecar until an identity
is known. Acquisition order:

1. Reclaim self: a record for this cloud instance already exists
   (dead namespace first, then live).
2. Dead token: take over the slot of a node that is no longer alive.
3. Pre-generated token: claim a placeholder slot.
4. New token: mint a slot, only when the cluster allows it.

Seeds are derived from a rack map rebuilt from the registry on every call.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from ringward.config import ClusterConfig
from ringward.constants import VIRTUAL_BACKUP_PREFIX, dead_app_name
from ringward.core.exceptions import (
    BootstrapExhaustedError,
    ConfigurationError,
    MembershipError,
    RegistryConflictError,
    RingwardError,
)
from ringward.identity.info import InstanceInfo
from ringward.identity.instance import RingInstance
from ringward.identity.policy import different_host_policy
from ringward.identity.rack_map import RackMap
from ringward.identity.registry import InstanceRegistry
from ringward.identity.token.base import ReplacingTokenRetriever, TokenRetriever
from ringward.membership.base import Membership

log = logger.bind(component="identity")

# Claim races and transient cloud faults are worth another round on a fresh map
_RETRYABLE = (RegistryConflictError, MembershipError)


@dataclass(frozen=True, slots=True)
class Acquisition:
    """One entry of the ordered acquisition table."""

    name: str
    retriever: TokenRetriever
    on_acquired: Callable[[TokenRetriever], None]
    attempts: int = 1
    delay: float = 0.0
    mints_token: bool = False


class InstanceIdentity:
    """Owns the resolved RingInstance and everything derived from it.

    Single writer: only ``bootstrap`` and the ``replaced_ip`` setter mutate
    state. ``get_seeds``, ``is_seed`` and ``replaced_ip`` updates exclude
    each other.
    """

    def __init__(
        self,
        config: ClusterConfig,
        instance_info: InstanceInfo,
        registry: InstanceRegistry,
        membership: Membership,
        dead_token_retriever: ReplacingTokenRetriever,
        pregenerated_token_retriever: TokenRetriever,
        new_token_retriever: TokenRetriever,
    ) -> None:
        self.config = config
        self.registry = registry
        self.membership = membership
        self.dead_token_retriever = dead_token_retriever
        self.pregenerated_token_retriever = pregenerated_token_retriever
        self.new_token_retriever = new_token_retriever

        self._instance_info = instance_info
        self._lock = threading.RLock()
        self._rack_map = RackMap()
        self._instance: RingInstance | None = None
        self._backup_identifier = ""
        self._out_of_service = False
        self._is_replace = False
        self._is_token_pregenerated = False
        self._replaced_ip = ""
        self._log = log.bind(app=config.app_name, instance_id=instance_info.instance_id)

    # -------------------------------------------------------------------------
    # Bootstrap
    # -------------------------------------------------------------------------

    def bootstrap(self) -> RingInstance:
        """Resolve this node's identity. Later calls return the same instance."""
        if self._instance is not None:
            return self._instance

        instance = self._reclaim_self() or self._acquire()
        self._instance = instance
        self._log.info("My token: {token}", token=instance.token or "<none>")

        if instance.token:
            self._backup_identifier = instance.token
        else:
            self._backup_identifier = f"{VIRTUAL_BACKUP_PREFIX}{instance.id}"
        return instance

    def _reclaim_self(self) -> RingInstance | None:
        my_id = self._instance_info.instance_id

        for instance in self.registry.get_all_ids(dead_app_name(self.config.app_name)):
            self._log.debug("[Dead] Iterating through the hosts: {iid}", iid=instance.instance_id)
            if instance.instance_id == my_id:
                self._out_of_service = True
                self._log.info("[Dead] Found that this node is dead: {record}", record=instance)
                return instance

        for instance in self.registry.get_all_ids(self.config.app_name):
            self._log.debug(
                "[Alive] Iterating through the hosts: {iid} id={id}",
                iid=instance.instance_id,
                id=instance.id,
            )
            if instance.instance_id == my_id:
                self._log.info("[Alive] Found that this node is alive: {record}", record=instance)
                return instance

        return None

    def _acquisitions(self) -> tuple[Acquisition, ...]:
        return (
            Acquisition("dead token", self.dead_token_retriever, self._on_replace),
            Acquisition("pre-generated token", self.pregenerated_token_retriever, self._on_pregenerated),
            Acquisition(
                "new token",
                self.new_token_retriever,
                lambda _: None,
                attempts=self.config.new_token_attempts,
                delay=self.config.new_token_delay,
                mints_token=True,
            ),
        )

    def _acquire(self) -> RingInstance:
        attempted: list[str] = []
        for step in self._acquisitions():
            if step.mints_token and not self.config.create_new_token:
                raise ConfigurationError(
                    "Node attempted to erroneously create a new token when it should "
                    "be grabbing an existing token"
                )
            attempted.append(step.name)
            instance = self._run(step)
            if instance is not None:
                step.on_acquired(step.retriever)
                self._log.info("Acquired slot {id} via {step}", id=instance.id, step=step.name)
                return instance
            self._log.info("No identity from {step}", step=step.name)

        raise BootstrapExhaustedError(self._instance_info.instance_id, tuple(attempted))

    def _run(self, step: Acquisition) -> RingInstance | None:
        def refresh(_: RetryCallState) -> None:
            step.retriever.set_rack_map(self._populate_rack_map())

        def before_sleep(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            self._log.warning(
                "{step} attempt {n}/{total} failed: {err}",
                step=step.name,
                n=state.attempt_number,
                total=step.attempts,
                err=error,
            )

        retrying = Retrying(
            stop=stop_after_attempt(step.attempts),
            wait=wait_fixed(step.delay),
            retry=retry_if_exception_type(_RETRYABLE),
            before=refresh,
            before_sleep=before_sleep,
            reraise=True,
        )
        return retrying(step.retriever.get)

    def _on_replace(self, retriever: TokenRetriever) -> None:
        self._is_replace = True
        replace_ip = getattr(retriever, "replace_ip", None)
        if replace_ip:
            self._replaced_ip = replace_ip

    def _on_pregenerated(self, _: TokenRetriever) -> None:
        self._is_token_pregenerated = True

    def _populate_rack_map(self) -> RackMap:
        self._rack_map = RackMap().populate(self.registry.get_all_ids(self.config.app_name))
        return self._rack_map

    # -------------------------------------------------------------------------
    # Seeds
    # -------------------------------------------------------------------------

    def _address(self, instance: RingInstance) -> str:
        return instance.host_ip if self.config.multi_dc else instance.host_name

    def get_seeds(self) -> list[str]:
        if self.config.seeds:
            return list(self.config.seeds)

        me = self.instance
        with self._lock:
            rack_map = self._populate_rack_map()
            my_rack = rack_map.get(me.rac)
            seeds: list[str] = []

            if len(self.config.racs) == 1:
                expected = self.membership.get_rac_membership_size()
                if expected != len(my_rack):
                    self._log.info(
                        "Rack {rac} has {n} of {expected} members, no seeds yet",
                        rac=me.rac,
                        n=len(my_rack),
                        expected=expected,
                    )
                    return []
                # The anchor bootstraps against the next node rather than itself
                if len(my_rack) > 1 and my_rack[0].instance_id == me.instance_id:
                    peer = my_rack[1]
                    if not peer.is_placeholder:
                        seeds.append(self._address(peer))

            eligible = different_host_policy(self.config.auto_bootstrap, me.host_name)
            for _, members in rack_map.items():
                first = next((m for m in members if eligible(m)), None)
                if first is not None:
                    seeds.append(self._address(first))

            return list(dict.fromkeys(seeds))

    def is_seed(self) -> bool:
        me = self.instance
        with self._lock:
            my_rack = self._populate_rack_map().get(me.rac)
            return bool(my_rack) and my_rack[0].host_name == me.host_name

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def instance(self) -> RingInstance:
        if self._instance is None:
            raise RingwardError("Instance identity has not been bootstrapped yet")
        return self._instance

    @property
    def instance_info(self) -> InstanceInfo:
        return self._instance_info

    @property
    def is_replace(self) -> bool:
        return self._is_replace

    @property
    def is_token_pregenerated(self) -> bool:
        return self._is_token_pregenerated

    @property
    def is_out_of_service(self) -> bool:
        return self._out_of_service

    @property
    def replaced_ip(self) -> str:
        return self._replaced_ip

    @replaced_ip.setter
    def replaced_ip(self, value: str) -> None:
        with self._lock:
            self._replaced_ip = value
            if value:
                self._is_replace = True

    @property
    def backup_identifier(self) -> str:
        return self._backup_identifier

    @backup_identifier.setter
    def backup_identifier(self, value: str) -> None:
        self._backup_identifier = value

    @property
    def token(self) -> str:
        return self.instance.token

    @property
    def instance_id(self) -> str:
        return self.instance.instance_id

    @property
    def host_ip(self) -> str:
        return self.instance.host_ip

    @property
    def host_name(self) -> str:
        return self.instance.host_name

    @property
    def is_externally_defined_token(self) -> bool:
        return bool(self.token.strip())
