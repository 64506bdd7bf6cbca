"""Ring identity records and the registry they live in.

InstanceIdentity itself lives in ``ringward.identity.identity``; it is not
re-exported here so that configuration can import the records without
pulling in the orchestrator.
"""

from ringward.identity.info import InstanceInfo
from ringward.identity.instance import RingInstance
from ringward.identity.policy import different_host_policy
from ringward.identity.rack_map import RackMap
from ringward.identity.registry import InMemoryInstanceRegistry, InstanceRegistry

__all__ = [
    "InMemoryInstanceRegistry",
    "InstanceInfo",
    "InstanceRegistry",
    "RackMap",
    "RingInstance",
    "different_host_policy",
]
