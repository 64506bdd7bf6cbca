"""Rack label to ordered members, rebuilt from the registry on demand."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from ringward.identity.instance import RingInstance


class RackMap:
    """Multi-valued mapping of rack label to its records in slot order.

    Always rebuilt from scratch with ``populate``; never patched in place.
    Slot 0 of a rack is the seed anchor, so ordering by ``id`` matters.
    """

    __slots__ = ("_racks",)

    def __init__(self) -> None:
        self._racks: dict[str, list[RingInstance]] = {}

    def populate(self, instances: Iterable[RingInstance]) -> RackMap:
        self._racks.clear()
        for instance in sorted(instances, key=lambda i: i.id):
            self._racks.setdefault(instance.rac, []).append(instance)
        return self

    def get(self, rac: str) -> list[RingInstance]:
        return list(self._racks.get(rac, ()))

    def racks(self) -> list[str]:
        return list(self._racks)

    def items(self) -> Iterator[tuple[str, list[RingInstance]]]:
        for rac, members in self._racks.items():
            yield rac, list(members)

    def __contains__(self, rac: object) -> bool:
        return rac in self._racks

    def __len__(self) -> int:
        return sum(len(members) for members in self._racks.values())

    def __repr__(self) -> str:
        sizes = ", ".join(f"{rac}={len(m)}" for rac, m in self._racks.items())
        return f"RackMap({sizes})"
