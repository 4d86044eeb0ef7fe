"""
Expectations for actions issued to the API server but not yet observed.

Controllers register an expectation before issuing a create or delete, and
retire it once the object shows up (or disappears) in the observed state.
While expectations are outstanding the observed state is known to be stale,
so the controller must not compute new scaling decisions from it.
"""
import logging
import threading
import time
from enum import Enum
from typing import Dict, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class ScaleAction(str, Enum):
    """Kind of scaling action being tracked."""
    CREATE = "create"
    DELETE = "delete"


class _ControllerExpectations:
    def __init__(self):
        self.objs: Dict[ScaleAction, Set[str]] = {}
        self.first_unsatisfied_timestamp: Optional[float] = None


class ScaleExpectations:
    """Pending create/delete names per controller key.

    One instance is shared by every reconcile in the process, including the
    parallel create workers of a single reconcile.
    """

    def __init__(self, clock=time.monotonic):
        self._lock = threading.Lock()
        self._controllers: Dict[str, _ControllerExpectations] = {}
        self._clock = clock

    def expect_scale(self, controller_key: str, action: ScaleAction, name: str) -> None:
        """Record that ``action`` was (about to be) issued for ``name``."""
        with self._lock:
            expectations = self._controllers.setdefault(controller_key, _ControllerExpectations())
            expectations.objs.setdefault(action, set()).add(name)

    def observe_scale(self, controller_key: str, action: ScaleAction, name: str) -> None:
        """Retire the expectation for ``name``, if any."""
        with self._lock:
            expectations = self._controllers.get(controller_key)
            if expectations is None:
                return
            names = expectations.objs.get(action)
            if names is None:
                return
            names.discard(name)
            if not names:
                del expectations.objs[action]
            if not expectations.objs:
                del self._controllers[controller_key]

    def satisfied_expectations(self, controller_key: str) -> Tuple[bool, float, Dict[ScaleAction, Set[str]]]:
        """
        Check whether all expectations of a controller have been observed.

        Args:
            controller_key: namespace/name of the controller

        Returns:
            Tuple of (satisfied, seconds since first found unsatisfied,
            copy of the pending names per action)
        """
        with self._lock:
            expectations = self._controllers.get(controller_key)
            if expectations is None or not expectations.objs:
                return True, 0.0, {}

            now = self._clock()
            if expectations.first_unsatisfied_timestamp is None:
                expectations.first_unsatisfied_timestamp = now
            dirty = {action: set(names) for action, names in expectations.objs.items()}
            return False, now - expectations.first_unsatisfied_timestamp, dirty

    def get_expectations(self, controller_key: str) -> Dict[ScaleAction, Set[str]]:
        """Copy of the pending names per action for a controller."""
        with self._lock:
            expectations = self._controllers.get(controller_key)
            if expectations is None:
                return {}
            return {action: set(names) for action, names in expectations.objs.items()}

    def delete_expectations(self, controller_key: str) -> None:
        """Drop every expectation of a controller."""
        with self._lock:
            self._controllers.pop(controller_key, None)


def _parse_resource_version(resource_version: Optional[str]) -> int:
    try:
        return int(resource_version or 0)
    except ValueError:
        return 0


def _owner_key(obj) -> Optional[str]:
    for ref in getattr(obj, "owner_references", None) or ():
        if ref.controller:
            return f"{obj.namespace}/{ref.name}"
    return None


class ResourceVersionExpectations:
    """Minimum resource version a later read of an object must reflect."""

    def __init__(self):
        self._lock = threading.Lock()
        self._versions: Dict[str, int] = {}
        # object key -> controller key of its owner
        self._owners: Dict[str, str] = {}

    @staticmethod
    def _key(obj) -> str:
        return obj.uid or f"{obj.namespace}/{obj.name}"

    def _drop(self, key: str) -> None:
        self._versions.pop(key, None)
        self._owners.pop(key, None)

    def expect(self, obj) -> None:
        """Expect the cache to reach at least the resource version of ``obj``."""
        version = _parse_resource_version(obj.resource_version)
        owner = _owner_key(obj)
        with self._lock:
            key = self._key(obj)
            if version > self._versions.get(key, 0):
                self._versions[key] = version
                if owner is not None:
                    self._owners[key] = owner

    def observe(self, obj) -> None:
        """Retire the expectation once ``obj`` reaches the expected version."""
        version = _parse_resource_version(obj.resource_version)
        with self._lock:
            key = self._key(obj)
            expected = self._versions.get(key)
            if expected is not None and version >= expected:
                self._drop(key)

    def is_satisfied(self, obj) -> bool:
        version = _parse_resource_version(obj.resource_version)
        with self._lock:
            key = self._key(obj)
            expected = self._versions.get(key)
            if expected is None:
                return True
            if version >= expected:
                self._drop(key)
                return True
            logger.debug(f"Object {key} resource version {version} not yet at expected {expected}")
            return False

    def delete(self, obj) -> None:
        with self._lock:
            self._drop(self._key(obj))

    def prune(self, controller_key: str, live_objs) -> int:
        """
        Drop expectations of objects owned by ``controller_key`` that are no
        longer listed.

        Args:
            controller_key: ``namespace/name`` of the owning CloneSet
            live_objs: every object currently listed for that owner

        Returns:
            Number of expectations dropped
        """
        live = {self._key(obj) for obj in live_objs}
        with self._lock:
            gone = [key for key, owner in self._owners.items() if owner == controller_key and key not in live]
            for key in gone:
                self._drop(key)
        if gone:
            logger.debug(f"Dropped {len(gone)} resource version expectations of vanished objects of {controller_key}")
        return len(gone)

    def __len__(self) -> int:
        with self._lock:
            return len(self._versions)
