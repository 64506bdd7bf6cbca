"""Instance registry contract and the process-local backend.

The durable registry is an external collaborator. Every backend must make
``create`` and ``delete`` conditional so that at most one node wins a slot.
"""

from __future__ import annotations

import json
import threading
from collections import defaultdict
from pathlib import Path
from typing import Protocol, runtime_checkable

from loguru import logger

from ringward.constants import DEAD_APP_SUFFIX
from ringward.core.exceptions import ConfigurationError, RegistryConflictError
from ringward.identity.instance import RingInstance

log = logger.bind(component="registry")


@runtime_checkable
class InstanceRegistry(Protocol):
    """Durable store of instance-to-token assignments, per app namespace."""

    def get_all_ids(self, app: str) -> list[RingInstance]:
        """Snapshot of every record stored under ``app``."""
        ...

    def create(self, instance: RingInstance) -> RingInstance:
        """Store ``instance``; raise RegistryConflictError if its slot is taken.

        Dead namespaces are an audit trail: a later record for the same slot
        replaces the earlier one instead of conflicting.
        """
        ...

    def delete(self, instance: RingInstance) -> None:
        """Remove ``instance``; raise RegistryConflictError if it changed."""
        ...


class InMemoryInstanceRegistry:
    """Thread-safe registry kept in process memory.

    Conflicts are detected on slot id, non-empty token and cloud instance id
    within the same live app namespace. Dead namespaces keep the latest
    record per slot.
    """

    __slots__ = ("_lock", "_records")

    def __init__(self, instances: list[RingInstance] | None = None) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, dict[int, RingInstance]] = defaultdict(dict)
        for instance in instances or ():
            self.create(instance)

    def get_all_ids(self, app: str) -> list[RingInstance]:
        with self._lock:
            return sorted(self._records.get(app, {}).values(), key=lambda i: i.id)

    def create(self, instance: RingInstance) -> RingInstance:
        with self._lock:
            namespace = self._records[instance.app]
            if instance.app.endswith(DEAD_APP_SUFFIX):
                namespace[instance.id] = instance
                log.debug("Recorded dead slot {id} in {app}", id=instance.id, app=instance.app)
                return instance
            if instance.id in namespace:
                raise RegistryConflictError(
                    f"Slot {instance.id} already taken in {instance.app}"
                )
            for existing in namespace.values():
                if instance.token and existing.token == instance.token:
                    raise RegistryConflictError(
                        f"Token {instance.token} already owned by slot {existing.id} in {instance.app}"
                    )
                if not instance.is_placeholder and existing.instance_id == instance.instance_id:
                    raise RegistryConflictError(
                        f"Instance {instance.instance_id} already holds slot {existing.id} in {instance.app}"
                    )
            namespace[instance.id] = instance
        log.debug("Created slot {id} in {app} for {iid}", id=instance.id, app=instance.app, iid=instance.instance_id)
        return instance

    def delete(self, instance: RingInstance) -> None:
        with self._lock:
            namespace = self._records.get(instance.app, {})
            if namespace.get(instance.id) != instance:
                raise RegistryConflictError(
                    f"Slot {instance.id} in {instance.app} changed or vanished before delete"
                )
            del namespace[instance.id]
        log.debug("Deleted slot {id} from {app}", id=instance.id, app=instance.app)

    # -------------------------------------------------------------------------
    # Snapshot files
    # -------------------------------------------------------------------------

    @classmethod
    def from_file(cls, path: Path) -> InMemoryInstanceRegistry:
        """Load a JSON list of records, as written by ``dump``."""
        try:
            raw = json.loads(path.read_text())
        except FileNotFoundError:
            raise ConfigurationError(f"Registry file not found: {path}") from None
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Registry file {path} is not valid JSON: {e}") from e

        if not isinstance(raw, list):
            raise ConfigurationError(f"Registry file {path} must contain a JSON list")
        return cls([RingInstance.from_dict(item) for item in raw])

    def dump(self, path: Path) -> None:
        with self._lock:
            records = [
                instance.to_dict()
                for namespace in self._records.values()
                for instance in namespace.values()
            ]
        path.write_text(json.dumps(records, indent=2))
