from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from ringward.identity import InMemoryInstanceRegistry
from ringward.identity.identity import InstanceIdentity
from ringward.identity.token import (
    DeadTokenRetriever,
    NewTokenRetriever,
    PreGeneratedTokenRetriever,
    TokenManager,
)
from tests.fakes import RACS, FakeMembership

pytestmark = [pytest.mark.xdist_group("unit")]

NODES_PER_RACK = 4


def _node(config, info, registry, membership, manager) -> InstanceIdentity:
    return InstanceIdentity(
        config,
        info,
        registry,
        membership,
        DeadTokenRetriever(config, info, registry, membership),
        PreGeneratedTokenRetriever(config, info, registry, membership, manager),
        NewTokenRetriever(config, info, registry, membership, manager),
    )


class TestConcurrentBootstrap:
    def test_racing_nodes_get_distinct_slots(self, config, make_info):
        registry = InMemoryInstanceRegistry()
        manager = TokenManager()
        infos = [
            make_info(f"i-{rac}-{n}", rac=rac)
            for rac in RACS
            for n in range(NODES_PER_RACK)
        ]
        membership = FakeMembership(
            live={info.instance_id for info in infos},
            rac_size=NODES_PER_RACK,
            rac_count=len(RACS),
        )
        nodes = [_node(config, info, registry, membership, manager) for info in infos]
        start = threading.Barrier(len(nodes))

        def boot(node: InstanceIdentity):
            start.wait()
            return node.bootstrap()

        with ThreadPoolExecutor(max_workers=len(nodes)) as pool:
            instances = list(pool.map(boot, nodes))

        stored = registry.get_all_ids("cass_orders")
        assert len(stored) == len(nodes)
        assert len({i.id for i in instances}) == len(nodes)
        assert len({i.token for i in instances}) == len(nodes)
        assert sorted(i.instance_id for i in stored) == sorted(i.instance_id for i in infos)

        offset = manager.region_offset("us-east-1")
        for rac_index, rac in enumerate(RACS):
            slots = sorted(i.id - offset for i in stored if i.rac == rac)
            assert slots == [rac_index + len(RACS) * n for n in range(NODES_PER_RACK)]

    def test_replacements_split_dead_slots(self, config, make_info, make_instance):
        dead = [make_instance(n * 3, f"i-gone-{n}") for n in range(3)]
        registry = InMemoryInstanceRegistry(dead)
        manager = TokenManager()
        infos = [make_info(f"i-new-{n}") for n in range(3)]
        membership = FakeMembership(live={info.instance_id for info in infos}, rac_count=3)
        nodes = [_node(config, info, registry, membership, manager) for info in infos]
        start = threading.Barrier(len(nodes))

        def boot(node: InstanceIdentity):
            start.wait()
            return node.bootstrap()

        with ThreadPoolExecutor(max_workers=len(nodes)) as pool:
            instances = list(pool.map(boot, nodes))

        assert sorted(i.id for i in instances) == [0, 3, 6]
        assert sorted(i.token for i in instances) == sorted(d.token for d in dead)
        assert all(node.is_replace for node in nodes)
        assert len(registry.get_all_ids("cass_orders-dead")) == 3

        membership.live.add("i-new-3")
        late = _node(config, make_info("i-new-3"), registry, membership, manager).bootstrap()

        assert manager.slot_position(late.id, "us-east-1") == 9
        assert late.id == manager.region_offset("us-east-1") + 9
