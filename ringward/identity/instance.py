"""Durable record describing one ring member's identity."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any

from ringward.constants import DUMMY_INSTANCE_ID


@dataclass(frozen=True, slots=True)
class RingInstance:
    """One slot of the token ring as stored in the instance registry.

    Attributes:
        id: Dense logical slot number, unique within ``app``.
        app: Logical cluster name (``<app>-dead`` for decommissioned records).
        instance_id: Cloud instance id, or ``new_slot`` for a placeholder.
        rac: Rack / availability zone label.
        dc: Region the slot belongs to.
        host_name: DNS name of the owner.
        host_ip: Network address of the owner.
        token: Ring position; empty for placeholders that carry none.
    """

    id: int
    app: str
    instance_id: str
    rac: str
    dc: str
    host_name: str = ""
    host_ip: str = ""
    token: str = ""

    @property
    def is_placeholder(self) -> bool:
        return self.instance_id.lower() == DUMMY_INSTANCE_ID

    def moved_to(self, app: str) -> RingInstance:
        """Same record under another namespace."""
        return replace(self, app=app)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RingInstance:
        return cls(
            id=int(data["id"]),
            app=str(data["app"]),
            instance_id=str(data["instance_id"]),
            rac=str(data["rac"]),
            dc=str(data.get("dc", "")),
            host_name=str(data.get("host_name") or ""),
            host_ip=str(data.get("host_ip") or ""),
            token=str(data.get("token") or ""),
        )
