from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import replace

import pytest

from ringward.config import ClusterConfig
from ringward.constants import InstanceEnvironment
from ringward.identity.info import InstanceInfo
from ringward.identity.instance import RingInstance
from tests.fakes import RACS, REGION


@pytest.fixture
def make_config() -> Callable[..., ClusterConfig]:
    def _make(**overrides: object) -> ClusterConfig:
        defaults: dict[str, object] = {
            "app_name": "cass_orders",
            "racs": RACS,
            "acl_group_name": "cass_orders",
            "new_token_delay": 0.0,
        }
        return ClusterConfig(**{**defaults, **overrides})  # type: ignore[arg-type]

    return _make


@pytest.fixture
def config(make_config: Callable[..., ClusterConfig]) -> ClusterConfig:
    return make_config()


@pytest.fixture
def make_info() -> Callable[..., InstanceInfo]:
    def _make(instance_id: str = "i-self", rac: str = RACS[0], **overrides: object) -> InstanceInfo:
        info = InstanceInfo(
            instance_id=instance_id,
            region=REGION,
            rac=rac,
            environment=InstanceEnvironment.VPC,
            asg_name=f"cass_orders-{rac}",
            vpc_id="vpc-123",
            host_name=f"{instance_id}.ec2.internal",
            host_ip="10.1.0.1",
        )
        return replace(info, **overrides)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def instance_info(make_info: Callable[..., InstanceInfo]) -> InstanceInfo:
    return make_info()


@pytest.fixture
def make_instance() -> Callable[..., RingInstance]:
    def _make(
        id: int,
        instance_id: str,
        rac: str = RACS[0],
        app: str = "cass_orders",
        token: str | None = None,
        **overrides: object,
    ) -> RingInstance:
        instance = RingInstance(
            id=id,
            app=app,
            instance_id=instance_id,
            rac=rac,
            dc=REGION,
            host_name=f"{instance_id}.ec2.internal",
            host_ip=f"10.0.{id % 250}.{id % 7 + 1}",
            token=str(id * 1000) if token is None else token,
        )
        return replace(instance, **overrides)  # type: ignore[arg-type]

    return _make


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.upper().startswith("RINGWARD_"):
            monkeypatch.delenv(name)
