"""Credential providers handing out boto3 sessions.

One provider serves the local account. In dual-account clusters a second
provider reaches the other account through an assumed role.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from ringward.clients import aws_client
from ringward.core.exceptions import ConfigurationError, MembershipError

log = logger.bind(component="credentials")

_ACCESS_KEYS = ("accessKey", "AWSACCESSID")
_SECRET_KEYS = ("secretKey", "AWSKEY")


@runtime_checkable
class CredentialProvider(Protocol):
    def get_credential_handle(self) -> boto3.Session: ...


class InstanceProfileCredential:
    """Default boto3 credential chain (instance profile, env vars, ~/.aws)."""

    def __init__(self, region: str) -> None:
        self.region = region

    def get_credential_handle(self) -> boto3.Session:
        return boto3.Session(region_name=self.region)


def read_properties(path: Path) -> dict[str, str]:
    """Parse a Java-style ``key=value`` properties file."""
    props: dict[str, str] = {}
    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith(("#", "!")):
            continue
        sep = min((i for i in (line.find("="), line.find(":")) if i >= 0), default=-1)
        if sep < 0:
            continue
        props[line[:sep].strip()] = line[sep + 1 :].strip()
    return props


class PropertiesFileCredential:
    """Static access keys read once from a properties file."""

    def __init__(self, path: Path, region: str) -> None:
        self.region = region
        try:
            props = read_properties(path)
        except FileNotFoundError:
            raise ConfigurationError(f"Credential file not found: {path}") from None

        access = next((props[k] for k in _ACCESS_KEYS if props.get(k)), None)
        secret = next((props[k] for k in _SECRET_KEYS if props.get(k)), None)
        if access is None or secret is None:
            raise ConfigurationError(f"Credential file {path} must define accessKey and secretKey")
        self._access_key = access
        self._secret_key = secret

    def get_credential_handle(self) -> boto3.Session:
        return boto3.Session(
            aws_access_key_id=self._access_key,
            aws_secret_access_key=self._secret_key,
            region_name=self.region,
        )


class AssumeRoleCredential:
    """Temporary credentials for another account, via STS AssumeRole."""

    def __init__(
        self,
        base: CredentialProvider,
        role_arn: str,
        region: str,
        session_name: str = "ringward",
    ) -> None:
        self.base = base
        self.role_arn = role_arn
        self.region = region
        self.session_name = session_name

    def get_credential_handle(self) -> boto3.Session:
        try:
            with aws_client("sts", self.base, self.region) as sts:
                resp = sts.assume_role(RoleArn=self.role_arn, RoleSessionName=self.session_name)
        except (ClientError, BotoCoreError) as e:
            log.error("Failed to assume role {arn}: {err}", arn=self.role_arn, err=e)
            raise MembershipError(f"Unable to assume role {self.role_arn}: {e}") from e

        creds = resp["Credentials"]
        return boto3.Session(
            aws_access_key_id=creds["AccessKeyId"],
            aws_secret_access_key=creds["SecretAccessKey"],
            aws_session_token=creds["SessionToken"],
            region_name=self.region,
        )


@dataclass(frozen=True, slots=True)
class AccountCredentials:
    """Credential pair used by membership: local account and the other one."""

    own: CredentialProvider
    cross: CredentialProvider

    @classmethod
    def single(cls, provider: CredentialProvider) -> AccountCredentials:
        return cls(own=provider, cross=provider)
