"""Centralized constants and enums for Ringward.

All magic strings, lifecycle states and retry defaults are defined here
to ensure consistency across membership and identity code.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final

# =============================================================================
# Registry
# =============================================================================

DUMMY_INSTANCE_ID: Final = "new_slot"
DEAD_APP_SUFFIX: Final = "-dead"
VIRTUAL_BACKUP_PREFIX: Final = "virtual"


def dead_app_name(app: str) -> str:
    """Namespace holding decommissioned records of ``app``."""
    return f"{app}{DEAD_APP_SUFFIX}"


# =============================================================================
# Cloud Lifecycle States
# =============================================================================


class InstanceEnvironment(StrEnum):
    """Network mode of the local instance."""

    CLASSIC = "classic"
    VPC = "vpc"


class MembershipType(StrEnum):
    """Source of truth used to enumerate live peers."""

    ASG = "asg"
    EC2 = "ec2"


# ASG reports "Terminating:Wait" and friends, EC2 reports "shutting-down".
NON_LIVE_STATES: Final = frozenset({"terminating", "shutting-down", "terminated"})


def is_live_state(lifecycle_state: str) -> bool:
    """True unless the state is one of the terminating/terminated states."""
    base = lifecycle_state.split(":", 1)[0].strip().lower()
    return base not in NON_LIVE_STATES


# =============================================================================
# Token Acquisition
# =============================================================================

NEW_TOKEN_ATTEMPTS: Final = 100
NEW_TOKEN_DELAY_SECONDS: Final = 0.1

MINIMUM_TOKEN: Final = 0
MAXIMUM_TOKEN: Final = 2**127


# =============================================================================
# Ports
# =============================================================================

STORAGE_PORT: Final = 7000
SSL_STORAGE_PORT: Final = 7001
ACL_PROTOCOL: Final = "tcp"
