"""
Pod lifecycle state handling for deferred deletion.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from kube_types import (
    LIFECYCLE_STATE_KEY,
    LIFECYCLE_TIMESTAMP_KEY,
    LifecycleHook,
    LifecycleState,
    PatchResult,
    Pod,
)

logger = logging.getLogger(__name__)


def _now_rfc3339() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def get_pod_lifecycle_state(pod: Pod) -> Optional[LifecycleState]:
    """Lifecycle state from the pod label, None if absent or unknown."""
    value = pod.labels.get(LIFECYCLE_STATE_KEY)
    try:
        return LifecycleState(value) if value else None
    except ValueError:
        logger.debug(f"Pod {pod.name} has unknown lifecycle state {value!r}")
        return None


def set_pod_lifecycle(pod: Pod, state: LifecycleState) -> None:
    """Set the lifecycle label and timestamp on a pod that is not yet created."""
    pod.labels[LIFECYCLE_STATE_KEY] = state.value
    pod.annotations[LIFECYCLE_TIMESTAMP_KEY] = _now_rfc3339()


def patch_pod_lifecycle(store, pod: Pod, state: LifecycleState) -> PatchResult:
    """
    Move an existing pod to ``state`` through the object store.

    Args:
        store: ObjectStore used to issue the patch
        pod: Pod as last observed
        state: Target lifecycle state

    Returns:
        PatchResult with changed=False when the pod is already in ``state``,
        otherwise changed=True and the patched pod
    """
    if get_pod_lifecycle_state(pod) == state:
        return PatchResult(changed=False, obj=pod)

    body = {
        "metadata": {
            "labels": {LIFECYCLE_STATE_KEY: state.value},
            "annotations": {LIFECYCLE_TIMESTAMP_KEY: _now_rfc3339()},
        }
    }
    patched = store.patch(pod, body)
    return PatchResult(changed=True, obj=patched)


def is_pod_hooked(hook: Optional[LifecycleHook], pod: Optional[Pod]) -> bool:
    """Whether ``pod`` is held back by ``hook``."""
    if hook is None or pod is None:
        return False
    for key, value in hook.labels_handler.items():
        if pod.labels.get(key) == value:
            return True
    for finalizer in hook.finalizers_handler:
        if finalizer in pod.finalizers:
            return True
    return False
