"""
Replica diff computation across the current and update revisions.
"""
from typing import Tuple

from kube_types import CloneSet


def clamp_partition(cs: CloneSet) -> int:
    """Partition of ``cs`` bounded to [0, replicas]."""
    replicas = cs.spec.replicas or 0
    partition = cs.spec.partition or 0
    return max(0, min(partition, replicas))


def calculate_diffs(cs: CloneSet, rev_consistent: bool, total_pods: int, not_updated_pods: int) -> Tuple[int, int]:
    """
    Compute how far the observed pods are from the desired state.

    Args:
        cs: CloneSet whose spec holds replicas and partition
        rev_consistent: Whether current and update revisions are the same
        total_pods: Number of observed pods
        not_updated_pods: Number of observed pods not on the update revision

    Returns:
        Tuple of (total_diff, current_rev_diff). A negative total_diff is the
        number of pods to create, a positive one the number to delete.
        current_rev_diff is the surplus (positive) or shortfall (negative)
        of not-updated pods relative to the partition.
    """
    total_diff = total_pods - cs.spec.replicas
    current_rev_diff = 0
    if total_diff != 0 and not rev_consistent and cs.spec.partition is not None:
        current_rev_diff = not_updated_pods - clamp_partition(cs)
    return total_diff, current_rev_diff
