"""Call-scoped AWS clients."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ringward.credentials import CredentialProvider


@contextmanager
def aws_client(service: str, credential: CredentialProvider, region: str) -> Iterator[Any]:
    """Yield a boto3 client that is closed on exit, success or not.

    Example:
        with aws_client("ec2", credential, "us-east-1") as ec2:
            ec2.describe_security_groups(GroupNames=["cass"])
    """
    session = credential.get_credential_handle()
    client = session.client(service, region_name=region)
    try:
        yield client
    finally:
        client.close()
