"""
Reconcile driver: reads a CloneSet and its objects, checks expectations and
runs one scaling pass.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from kubernetes.client.rest import ApiException

from cloneset_scale import ScaleError, ScaleManager
from cloneset_utils import get_controller_key
from expectations import ResourceVersionExpectations, ScaleAction, ScaleExpectations
from kube_types import PersistentVolumeClaim, Pod

logger = logging.getLogger(__name__)

_FINISHED_PHASES = ("Succeeded", "Failed")


@dataclass
class ReconcileResult:
    """Outcome of one reconcile pass."""
    changed: bool = False
    skipped: bool = False
    reason: Optional[str] = None
    error: Optional[str] = None


def is_pod_active(pod: Pod) -> bool:
    return pod.deletion_timestamp is None and pod.phase not in _FINISHED_PHASES


class CloneSetReconciler:
    """Runs scaling passes for CloneSets read through the adapters."""

    def __init__(self, adapters, scale_manager: ScaleManager,
                 scale_expectations: ScaleExpectations,
                 resource_version_expectations: ResourceVersionExpectations,
                 expectation_timeout: float = 300):
        self.adapters = adapters
        self.scale_manager = scale_manager
        self.scale_expectations = scale_expectations
        self.resource_version_expectations = resource_version_expectations
        self.expectation_timeout = expectation_timeout
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_lock = threading.Lock()

    def _key_lock(self, controller_key: str) -> threading.Lock:
        with self._locks_lock:
            lock = self._locks.get(controller_key)
            if lock is None:
                lock = self._locks[controller_key] = threading.Lock()
            return lock

    def forget(self, controller_key: str) -> None:
        """Drop all expectations held for a CloneSet that no longer exists."""
        self.scale_expectations.delete_expectations(controller_key)
        self.resource_version_expectations.prune(controller_key, [])

    def observe(self, controller_key: str, pods: List[Pod], pvcs: List[PersistentVolumeClaim]) -> None:
        """Retire expectations that the listed objects already reflect."""
        present = {obj.name: obj for obj in list(pods) + list(pvcs)}
        pending = self.scale_expectations.get_expectations(controller_key)

        for name in pending.get(ScaleAction.CREATE, ()):
            if name in present:
                self.scale_expectations.observe_scale(controller_key, ScaleAction.CREATE, name)
        for name in pending.get(ScaleAction.DELETE, ()):
            obj = present.get(name)
            if obj is None or obj.deletion_timestamp is not None:
                self.scale_expectations.observe_scale(controller_key, ScaleAction.DELETE, name)

        for pod in pods:
            self.resource_version_expectations.observe(pod)
        self.resource_version_expectations.prune(controller_key, pods)

    def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """
        Run one scaling pass for a CloneSet.

        Passes for the same CloneSet never overlap: a call made while another
        pass for that CloneSet is running returns a skipped result.

        Args:
            namespace: CloneSet namespace
            name: CloneSet name

        Returns:
            ReconcileResult describing what happened

        Raises:
            ApiException: if the CloneSet or its objects cannot be read
        """
        controller_key = f"{namespace}/{name}"
        lock = self._key_lock(controller_key)
        if not lock.acquire(blocking=False):
            logger.info(f"CloneSet {controller_key} reconcile already in progress")
            return ReconcileResult(skipped=True, reason="reconcile in progress")
        try:
            return self._reconcile(namespace, name)
        finally:
            lock.release()

    def _reconcile(self, namespace: str, name: str) -> ReconcileResult:
        try:
            cs = self.adapters.get_cloneset(namespace, name)
        except ApiException as e:
            if e.status == 404:
                logger.info(f"CloneSet {namespace}/{name} not found, dropping its expectations")
                self.forget(f"{namespace}/{name}")
            raise

        controller_key = get_controller_key(cs)
        pods, pvcs = self.adapters.get_owned_objects(cs)
        self.observe(controller_key, pods, pvcs)

        satisfied, unsatisfied_duration, dirty = self.scale_expectations.satisfied_expectations(controller_key)
        if not satisfied:
            if unsatisfied_duration < self.expectation_timeout:
                pending = {action.value: sorted(names) for action, names in dirty.items()}
                logger.info(f"CloneSet {controller_key} waiting for expectations {pending}")
                return ReconcileResult(skipped=True, reason=f"expectations not satisfied: {pending}")
            logger.warning(f"CloneSet {controller_key} expectations unsatisfied for "
                           f"{unsatisfied_duration:.0f}s, dropping them")
            self.scale_expectations.delete_expectations(controller_key)

        for pod in pods:
            if not self.resource_version_expectations.is_satisfied(pod):
                logger.info(f"CloneSet {controller_key} waiting for pod {pod.name} to be up to date")
                return ReconcileResult(skipped=True, reason=f"pod {pod.name} not up to date")

        active_pods = [pod for pod in pods if is_pod_active(pod)]
        live_pvcs = [pvc for pvc in pvcs if pvc.deletion_timestamp is None]
        current_cs, current_revision, update_revision = self.adapters.get_revisions(cs)

        try:
            changed = self.scale_manager.manage(current_cs, cs, current_revision, update_revision,
                                                active_pods, live_pvcs)
        except ScaleError as e:
            logger.error(f"CloneSet {controller_key} scaling failed: {e}")
            return ReconcileResult(changed=e.changed, error=str(e))

        return ReconcileResult(changed=changed)
