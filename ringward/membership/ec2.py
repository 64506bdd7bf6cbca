"""Membership backed by a raw scan of the region's EC2 instances."""

from __future__ import annotations

from typing import Any

from ringward.constants import is_live_state
from ringward.core.exceptions import UnsupportedMembershipOperationError
from ringward.credentials import CredentialProvider
from ringward.membership.base import AWSMembership


class EC2InstanceMembership(AWSMembership):
    """Every live instance visible to the credentials, no group scoping.

    Callers needing rack precision must intersect with registry data.
    """

    def _get_live_instances(self, credential: CredentialProvider) -> list[str]:
        instance_ids: list[str] = []
        with self._client("ec2", credential, "describe instances") as ec2:
            # NextToken is API pagination, unrelated to ring tokens
            request: dict[str, Any] = {}
            while True:
                resp = ec2.describe_instances(**request)
                for reservation in resp.get("Reservations", []):
                    for instance in reservation.get("Instances", []):
                        if is_live_state(instance.get("State", {}).get("Name", "")):
                            instance_ids.append(instance["InstanceId"])
                next_token = resp.get("NextToken")
                if not next_token:
                    break
                request = {"NextToken": next_token}

        self._log.info(
            "Querying Amazon returned following instances in the RAC: {rac}, {ids}",
            rac=self.instance_info.rac,
            ids=",".join(instance_ids),
        )
        return instance_ids

    def get_rac_membership_size(self) -> int:
        raise UnsupportedMembershipOperationError(
            "Cannot get rac membership size when running outside of an autoscaling group"
        )
