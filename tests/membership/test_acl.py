from __future__ import annotations

import pytest

from ringward.constants import InstanceEnvironment
from ringward.core.exceptions import (
    ConfigurationError,
    MembershipError,
    SecurityGroupNotFoundError,
)
from ringward.credentials import AccountCredentials
from ringward.membership import ASGMembership
from tests.fakes import FakeAWS, FakeCredential, client_error

pytestmark = [pytest.mark.xdist_group("unit")]

_GROUP_LOOKUP = {"SecurityGroups": [{"GroupId": "sg-42", "GroupName": "cass_orders"}]}


@pytest.fixture
def aws() -> FakeAWS:
    return FakeAWS()


@pytest.fixture
def vpc(config, instance_info, aws) -> ASGMembership:
    return ASGMembership(config, AccountCredentials.single(FakeCredential(aws)), instance_info)


@pytest.fixture
def classic(config, make_info, aws) -> ASGMembership:
    info = make_info(environment=InstanceEnvironment.CLASSIC, vpc_id="")
    return ASGMembership(config, AccountCredentials.single(FakeCredential(aws)), info)


class TestAddAcl:
    def test_classic_addresses_group_by_name(self, classic, aws):
        aws.on("ec2", "authorize_security_group_ingress", {})

        classic.add_acl(["10.0.0.5/32", "10.0.0.6/32"], 7000, 7001)

        assert aws.calls_to("authorize_security_group_ingress") == [{
            "GroupName": "cass_orders",
            "IpPermissions": [{
                "IpProtocol": "tcp",
                "FromPort": 7000,
                "ToPort": 7001,
                "IpRanges": [{"CidrIp": "10.0.0.5/32"}, {"CidrIp": "10.0.0.6/32"}],
            }],
        }]
        assert aws.calls_to("describe_security_groups") == []

    def test_vpc_resolves_group_id_first(self, vpc, aws):
        aws.on("ec2", "describe_security_groups", _GROUP_LOOKUP)
        aws.on("ec2", "authorize_security_group_ingress", {})

        vpc.add_acl(["10.0.0.5/32"], 7000, 7001)

        assert aws.calls_to("describe_security_groups") == [{
            "Filters": [
                {"Name": "group-name", "Values": ["cass_orders"]},
                {"Name": "vpc-id", "Values": ["vpc-123"]},
            ]
        }]
        (call,) = aws.calls_to("authorize_security_group_ingress")
        assert call["GroupId"] == "sg-42"
        assert "GroupName" not in call

    def test_duplicate_rule_is_not_an_error(self, classic, aws):
        aws.on("ec2", "authorize_security_group_ingress", client_error("InvalidPermission.Duplicate"))

        classic.add_acl(["10.0.0.5/32"], 7000, 7001)
        classic.add_acl(["10.0.0.5/32"], 7000, 7001)
        assert aws.all_closed

    def test_other_faults_raise(self, classic, aws):
        aws.on("ec2", "authorize_security_group_ingress", client_error("UnauthorizedOperation"))

        with pytest.raises(MembershipError, match="UnauthorizedOperation"):
            classic.add_acl(["10.0.0.5/32"], 7000, 7001)

    def test_empty_ranges_make_no_call(self, vpc, aws):
        vpc.add_acl([], 7000, 7001)
        assert aws.calls == []

    def test_ranges_are_deduplicated(self, classic, aws):
        aws.on("ec2", "authorize_security_group_ingress", {})

        classic.add_acl(["10.0.0.6/32", "10.0.0.5/32", "10.0.0.6/32"], 7000, 7001)

        (call,) = aws.calls_to("authorize_security_group_ingress")
        assert call["IpPermissions"][0]["IpRanges"] == [
            {"CidrIp": "10.0.0.5/32"},
            {"CidrIp": "10.0.0.6/32"},
        ]


class TestRemoveAcl:
    def test_missing_rule_is_not_an_error(self, vpc, aws):
        aws.on("ec2", "describe_security_groups", _GROUP_LOOKUP)
        aws.on("ec2", "revoke_security_group_ingress", client_error("InvalidPermission.NotFound"))

        vpc.remove_acl(["10.0.0.5/32"], 7000, 7001)

        (call,) = aws.calls_to("revoke_security_group_ingress")
        assert call["GroupId"] == "sg-42"

    def test_classic_revokes_by_name(self, classic, aws):
        aws.on("ec2", "revoke_security_group_ingress", {})

        classic.remove_acl(["10.0.0.5/32"], 7000, 7001)

        (call,) = aws.calls_to("revoke_security_group_ingress")
        assert call["GroupName"] == "cass_orders"


class TestListAcl:
    def test_only_exact_port_ranges_are_returned(self, classic, aws):
        aws.on("ec2", "describe_security_groups", {
            "SecurityGroups": [{
                "GroupName": "cass_orders",
                "IpPermissions": [
                    {"FromPort": 7000, "ToPort": 7001, "IpRanges": [{"CidrIp": "10.0.0.5/32"}]},
                    {"FromPort": 7000, "ToPort": 7001, "IpRanges": [{"CidrIp": "10.0.0.6/32"}]},
                    {"FromPort": 7000, "ToPort": 7000, "IpRanges": [{"CidrIp": "10.0.0.7/32"}]},
                    {"FromPort": 22, "ToPort": 22, "IpRanges": [{"CidrIp": "0.0.0.0/0"}]},
                ],
            }]
        })

        assert classic.list_acl(7000, 7001) == {"10.0.0.5/32", "10.0.0.6/32"}
        assert aws.calls_to("describe_security_groups") == [{"GroupNames": ["cass_orders"]}]

    def test_vpc_lists_by_group_id(self, vpc, aws):
        aws.on("ec2", "describe_security_groups", [
            _GROUP_LOOKUP,
            {
                "SecurityGroups": [{
                    "GroupId": "sg-42",
                    "IpPermissions": [
                        {"FromPort": 7000, "ToPort": 7001, "IpRanges": [{"CidrIp": "10.0.0.5/32"}]},
                    ],
                }]
            },
        ])

        assert vpc.list_acl(7000, 7001) == {"10.0.0.5/32"}
        assert aws.calls_to("describe_security_groups")[1] == {"GroupIds": ["sg-42"]}

    def test_empty_group(self, classic, aws):
        aws.on("ec2", "describe_security_groups", {"SecurityGroups": [{"GroupName": "cass_orders"}]})
        assert classic.list_acl(7000, 7001) == set()


class TestVpcGroupResolution:
    def test_missing_group_raises(self, vpc, aws):
        aws.on("ec2", "describe_security_groups", {"SecurityGroups": []})

        with pytest.raises(SecurityGroupNotFoundError) as exc_info:
            vpc.add_acl(["10.0.0.5/32"], 7000, 7001)
        assert isinstance(exc_info.value, MembershipError)
        assert isinstance(exc_info.value, ConfigurationError)
        assert aws.calls_to("authorize_security_group_ingress") == []

    def test_empty_vpc_id_is_a_configuration_error(self, config, make_info, aws):
        membership = ASGMembership(
            config,
            AccountCredentials.single(FakeCredential(aws)),
            make_info(vpc_id=""),
        )

        with pytest.raises(ConfigurationError, match="vpc_id"):
            membership.list_acl(7000, 7001)
        assert aws.calls == []

    def test_group_name_defaults_to_app_name(self, make_config, make_info, aws):
        membership = ASGMembership(
            make_config(acl_group_name=""),
            AccountCredentials.single(FakeCredential(aws)),
            make_info(environment=InstanceEnvironment.CLASSIC),
        )
        aws.on("ec2", "authorize_security_group_ingress", {})

        membership.add_acl(["10.0.0.5/32"], 7000, 7001)
        assert aws.calls_to("authorize_security_group_ingress")[0]["GroupName"] == "cass_orders"
