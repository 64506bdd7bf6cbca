"""Live cluster membership and security group ACLs."""

from ringward.membership.asg import ASGMembership
from ringward.membership.base import AWSMembership, Membership, merge_live_instances
from ringward.membership.ec2 import EC2InstanceMembership

__all__ = [
    "ASGMembership",
    "AWSMembership",
    "EC2InstanceMembership",
    "Membership",
    "merge_live_instances",
]
