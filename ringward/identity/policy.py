"""Seed eligibility policy shared by seed computation and membership."""

from __future__ import annotations

from collections.abc import Callable

from ringward.identity.instance import RingInstance

type InstancePredicate = Callable[[RingInstance], bool]


def different_host_policy(auto_bootstrap: bool, local_host_name: str) -> InstancePredicate:
    """Build the predicate selecting records that may be offered as seeds.

    Placeholders are never eligible. With auto_bootstrap the cluster is
    already running, so the local host is excluded as well; a fresh
    non-bootstrapping cluster needs some node to seed from itself to get
    through the shadow round.
    """
    if auto_bootstrap:
        return lambda instance: (
            not instance.is_placeholder and instance.host_name != local_host_name
        )
    return lambda instance: not instance.is_placeholder
