"""
Selection of pods to delete during scale-in.
"""
import logging
from datetime import datetime, timezone
from typing import List, Tuple

from kube_types import SPECIFIED_DELETE_LABEL, CloneSet, LifecycleState, Pod
from lifecycle import get_pod_lifecycle_state

logger = logging.getLogger(__name__)

# Pending < Unknown < Running
_PHASE_RANK = {"Pending": 0, "Unknown": 1, "Running": 2}

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def is_pod_specified_delete(cs: CloneSet, pod: Pod) -> bool:
    """Whether the pod is explicitly marked for deletion."""
    if SPECIFIED_DELETE_LABEL in pod.labels:
        return True
    return pod.name in cs.spec.pods_to_delete


def get_planned_deleted_pods(cs: CloneSet, pods: List[Pod]) -> Tuple[List[Pod], List[Pod]]:
    """
    Split out the pods already planned for deletion.

    Returns:
        Tuple of (pods specified to delete, pods in PreparingDelete)
    """
    specified = []
    pre_delete = []
    for pod in pods:
        if is_pod_specified_delete(cs, pod):
            specified.append(pod)
        if get_pod_lifecycle_state(pod) == LifecycleState.PREPARING_DELETE:
            pre_delete.append(pod)
    return specified, pre_delete


def merge_pods(*pod_lists: List[Pod]) -> List[Pod]:
    """Concatenate pod lists, keeping the first pod of each name."""
    seen = set()
    merged = []
    for pods in pod_lists:
        for pod in pods:
            if pod.name in seen:
                continue
            seen.add(pod.name)
            merged.append(pod)
    return merged


def active_pods_sort_key(pod: Pod):
    """Sort key putting the pods cheapest to lose first.

    Unassigned before assigned, Pending before Unknown before Running,
    not-ready before ready, more restarts before fewer, newer before older.
    """
    created = pod.creation_timestamp or _EPOCH
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return (
        pod.node_name is not None,
        _PHASE_RANK.get(pod.phase, 1),
        pod.ready,
        -pod.restart_count,
        -created.timestamp(),
    )


def _choose(pods: List[Pod], diff: int) -> List[Pod]:
    if diff <= 0:
        return []
    if diff >= len(pods):
        return list(pods)
    return sorted(pods, key=active_pods_sort_key)[:diff]


def choose_pods_to_delete(total_diff: int, current_rev_diff: int,
                          not_updated_pods: List[Pod], updated_pods: List[Pod]) -> List[Pod]:
    """
    Choose ``total_diff`` pods to remove on scale-in.

    Not-updated pods are taken first while there is a surplus of them
    (``current_rev_diff`` > 0); otherwise updated pods are taken first. Any
    remainder comes from the other revision.
    """
    if current_rev_diff > 0:
        first, second = not_updated_pods, updated_pods
        first_count = min(current_rev_diff, total_diff)
    else:
        first, second = updated_pods, not_updated_pods
        first_count = total_diff

    chosen = _choose(first, first_count)
    remainder = total_diff - len(chosen)
    if remainder > 0:
        chosen_names = {pod.name for pod in chosen}
        rest = [pod for pod in first if pod.name not in chosen_names]
        chosen += _choose(second, remainder)
        remainder = total_diff - len(chosen)
        if remainder > 0:
            chosen += _choose(rest, remainder)

    if len(chosen) < total_diff:
        logger.warning(f"Asked to delete {total_diff} pods but only {len(chosen)} exist")
    return chosen
