"""Membership backed by the rack's autoscaling groups."""

from __future__ import annotations

from ringward.constants import is_live_state
from ringward.credentials import CredentialProvider
from ringward.membership.base import AWSMembership


class ASGMembership(AWSMembership):
    """Live peers and rack capacity read from the node's ASG and its siblings.

    A rack may span several groups; ``sibling_asg_names`` lists the others.
    """

    def _asg_names(self) -> list[str]:
        names = [self.instance_info.asg_name, *self.config.sibling_asg_names]
        return [n for n in dict.fromkeys(names) if n]

    def _describe(self, credential: CredentialProvider) -> list[dict]:
        names = self._asg_names()
        with self._client("autoscaling", credential, "describe groups") as client:
            resp = client.describe_auto_scaling_groups(AutoScalingGroupNames=names)
        return resp.get("AutoScalingGroups", [])

    def _get_live_instances(self, credential: CredentialProvider) -> list[str]:
        instance_ids = [
            ins["InstanceId"]
            for asg in self._describe(credential)
            for ins in asg.get("Instances", [])
            if is_live_state(ins.get("LifecycleState", ""))
        ]
        self._log.info(
            "Querying Amazon returned following instances in the RAC: {rac}, ASGs: {asgs} --> {ids}",
            rac=self.instance_info.rac,
            asgs=",".join(self._asg_names()),
            ids=",".join(instance_ids),
        )
        return instance_ids

    def get_rac_membership_size(self) -> int:
        """Sum of the configured maximum sizes, not the current live count."""
        size = sum(asg.get("MaxSize", 0) for asg in self._describe(self.credentials.own))
        self._log.info("Query on ASG returning {size} instances", size=size)
        return size
