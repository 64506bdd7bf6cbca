"""Cloud membership shared by the ASG and raw EC2 strategies.

Answers three questions for the identity layer: is a peer still alive,
how big is my rack, how many racks are there. Also manages the ingress
rules peers need on the node's security group.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any, Protocol, runtime_checkable

from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from ringward.clients import aws_client
from ringward.config import ClusterConfig
from ringward.constants import ACL_PROTOCOL
from ringward.core.exceptions import (
    ConfigurationError,
    MembershipError,
    SecurityGroupNotFoundError,
)
from ringward.credentials import AccountCredentials, CredentialProvider
from ringward.identity.info import InstanceInfo
from ringward.identity.instance import RingInstance

log = logger.bind(component="membership")

_DUPLICATE_RULE = "InvalidPermission.Duplicate"
_MISSING_RULE = "InvalidPermission.NotFound"


@runtime_checkable
class Membership(Protocol):
    """What the identity layer needs to know about live peers."""

    def is_instance_alive(self, instance: RingInstance) -> bool: ...
    def live_instance_ids(self) -> list[str]: ...
    def get_rac_membership_size(self) -> int: ...
    def get_rac_count(self) -> int: ...


def merge_live_instances(local: Iterable[str], cross: Iterable[str]) -> list[str]:
    """Union of two account snapshots, local entries first.

    Ids present in both keep their cross-account position, so merging the
    same cross snapshot again is a no-op.
    """
    cross_ids = list(dict.fromkeys(cross))
    seen = set(cross_ids)
    local_only = [i for i in dict.fromkeys(local) if i not in seen]
    return local_only + cross_ids


def _ip_permission(ip_ranges: Iterable[str], from_port: int, to_port: int) -> dict[str, Any]:
    return {
        "IpProtocol": ACL_PROTOCOL,
        "FromPort": from_port,
        "ToPort": to_port,
        "IpRanges": [{"CidrIp": cidr} for cidr in ip_ranges],
    }


class AWSMembership(ABC):
    """Membership backed by the AWS control plane.

    Subclasses only decide how live instance ids are listed. Every cloud
    fault surfaces as MembershipError; nothing here retries.
    """

    def __init__(
        self,
        config: ClusterConfig,
        credentials: AccountCredentials,
        instance_info: InstanceInfo,
    ) -> None:
        self.config = config
        self.credentials = credentials
        self.instance_info = instance_info
        self._log = log.bind(rac=instance_info.rac, group=config.group_name)

    # -------------------------------------------------------------------------
    # Strategy hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    def _get_live_instances(self, credential: CredentialProvider) -> list[str]:
        """Ids of live instances visible to ``credential``."""

    @abstractmethod
    def get_rac_membership_size(self) -> int:
        """Declared capacity of this node's rack."""

    # -------------------------------------------------------------------------
    # Membership queries
    # -------------------------------------------------------------------------

    def is_instance_alive(self, instance: RingInstance) -> bool:
        if instance.is_placeholder:
            return False
        return instance.instance_id in self.live_instance_ids()

    def live_instance_ids(self) -> list[str]:
        """Live snapshot for the account(s) in scope."""
        local = self._get_live_instances(self.credentials.own)
        if not self.config.dual_account:
            self._log.debug("Single account cluster")
            return local

        self._log.info("Dual account cluster")
        cross = self._get_live_instances(self.credentials.cross)
        local_label, cross_label = (
            ("EC2 classic instances", "VPC account")
            if self.instance_info.is_classic
            else ("VPC account", "EC2 classic instances")
        )
        self._log.info("{label} (local account): {ids}", label=local_label, ids=local)
        self._log.info("{label} (cross-account): {ids}", label=cross_label, ids=cross)

        merged = merge_live_instances(local, cross)
        self._log.info("Combined instances in the AZ: {ids}", ids=merged)
        return merged

    def get_rac_count(self) -> int:
        return len(self.config.racs)

    # -------------------------------------------------------------------------
    # Security group ACL
    # -------------------------------------------------------------------------

    def add_acl(self, ip_ranges: Iterable[str], from_port: int, to_port: int) -> None:
        """Authorize ingress from ``ip_ranges``. Already present rules are kept."""
        ranges = sorted(set(ip_ranges))
        if not ranges:
            return
        with self._ec2("authorize ingress") as ec2:
            try:
                ec2.authorize_security_group_ingress(
                    **self._group_selector(ec2),
                    IpPermissions=[_ip_permission(ranges, from_port, to_port)],
                )
            except ClientError as e:
                if _error_code(e) != _DUPLICATE_RULE:
                    raise
                self._log.info("ACL already present for {ranges}", ranges=ranges)
                return
        self._log.info(
            "Done adding ACL to {env}: {ranges}",
            env=self.instance_info.environment,
            ranges=",".join(ranges),
        )

    def remove_acl(self, ip_ranges: Iterable[str], from_port: int, to_port: int) -> None:
        """Revoke ingress from ``ip_ranges``. Missing rules are ignored."""
        ranges = sorted(set(ip_ranges))
        if not ranges:
            return
        with self._ec2("revoke ingress") as ec2:
            try:
                ec2.revoke_security_group_ingress(
                    **self._group_selector(ec2),
                    IpPermissions=[_ip_permission(ranges, from_port, to_port)],
                )
            except ClientError as e:
                if _error_code(e) != _MISSING_RULE:
                    raise
                self._log.info("ACL already absent for {ranges}", ranges=ranges)
                return
        self._log.info(
            "Done removing ACL from {env}: {ranges}",
            env=self.instance_info.environment,
            ranges=",".join(ranges),
        )

    def list_acl(self, from_port: int, to_port: int) -> set[str]:
        """CIDRs of rules whose port range is exactly ``from_port``..``to_port``."""
        with self._ec2("describe security groups") as ec2:
            if self.instance_info.is_classic:
                resp = ec2.describe_security_groups(GroupNames=[self.config.group_name])
            else:
                resp = ec2.describe_security_groups(GroupIds=[self._vpc_group_id(ec2)])

        ranges: set[str] = set()
        for group in resp.get("SecurityGroups", []):
            for perm in group.get("IpPermissions", []):
                if perm.get("FromPort") == from_port and perm.get("ToPort") == to_port:
                    ranges.update(r["CidrIp"] for r in perm.get("IpRanges", []))
        self._log.debug("Fetched {n} ACL entries for {env}", n=len(ranges), env=self.instance_info.environment)
        return ranges

    def _group_selector(self, ec2: Any) -> dict[str, str]:
        if self.instance_info.is_classic:
            return {"GroupName": self.config.group_name}
        return {"GroupId": self._vpc_group_id(ec2)}

    def _vpc_group_id(self, ec2: Any) -> str:
        vpc_id = self.instance_info.vpc_id
        if not vpc_id:
            raise ConfigurationError("vpc_id is empty even though the instance is running in a VPC")

        resp = ec2.describe_security_groups(
            Filters=[
                {"Name": "group-name", "Values": [self.config.group_name]},
                {"Name": "vpc-id", "Values": [vpc_id]},
            ]
        )
        for group in resp.get("SecurityGroups", []):
            self._log.debug("Got group-id {gid} in {vpc}", gid=group["GroupId"], vpc=vpc_id)
            return group["GroupId"]

        self._log.error("Unable to get group-id in vpc-id={vpc}", vpc=vpc_id)
        raise SecurityGroupNotFoundError(self.config.group_name, vpc_id)

    # -------------------------------------------------------------------------
    # Clients
    # -------------------------------------------------------------------------

    @contextmanager
    def _ec2(self, action: str) -> Iterator[Any]:
        with self._client("ec2", self.credentials.own, action) as client:
            yield client

    @contextmanager
    def _client(self, service: str, credential: CredentialProvider, action: str) -> Iterator[Any]:
        """Call-scoped client; cloud faults become MembershipError."""
        account = "cross" if credential is not self.credentials.own else "own"
        try:
            with aws_client(service, credential, self.instance_info.region) as client:
                yield client
        except (ClientError, BotoCoreError) as e:
            self._log.bind(account=account).error(
                "AWS {service} call failed ({action}) in {env}: {err}",
                service=service,
                action=action,
                env=self.instance_info.environment,
                err=e,
            )
            raise MembershipError(
                f"{service} {action} failed for rac={self.instance_info.rac} "
                f"group={self.config.group_name} account={account}: {e}"
            ) from e


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")
