"""Ring token arithmetic."""

from __future__ import annotations

import hashlib

from ringward.constants import MAXIMUM_TOKEN, MINIMUM_TOKEN


class TokenManager:
    """Evenly spaced tokens, shifted per region so data centers never collide."""

    def __init__(self, minimum: int = MINIMUM_TOKEN, maximum: int = MAXIMUM_TOKEN) -> None:
        if maximum <= minimum:
            raise ValueError("maximum token must be greater than minimum token")
        self.minimum = minimum
        self.maximum = maximum

    def initial_token(self, size: int, position: int, offset: int) -> int:
        if size <= 0:
            raise ValueError(f"ring size must be positive, got {size}")
        if position < 0:
            raise ValueError(f"position must be non-negative, got {position}")
        return self.minimum + (self.maximum - self.minimum) // size * position + offset

    def create_token(self, slot: int, rac_count: int, rac_size: int, region: str) -> str:
        return str(self.initial_token(rac_count * rac_size, slot, self.region_offset(region)))

    def slot_position(self, slot_id: int, region: str) -> int:
        """Ring position of a registry id.

        Minted ids carry the region offset; ids written densely by deployment
        tooling do not. Both map to the same position space.
        """
        offset = self.region_offset(region)
        return slot_id - offset if slot_id >= offset else slot_id

    @staticmethod
    def region_offset(region: str) -> int:
        """Stable non-negative 31-bit offset for ``region``."""
        digest = hashlib.md5(region.encode(), usedforsecurity=False).digest()
        return int.from_bytes(digest[:4], "big") & 0x7FFFFFFF
