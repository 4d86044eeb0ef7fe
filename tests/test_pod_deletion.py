"""Unit tests for choosing pods to delete."""

import pytest

from kube_types import SPECIFIED_DELETE_LABEL, LifecycleState
from pod_deletion import (
    active_pods_sort_key,
    choose_pods_to_delete,
    get_planned_deleted_pods,
    merge_pods,
)
from conftest import make_cloneset, make_pod

pytestmark = [pytest.mark.unit]


def names(pods):
    return sorted(p.name for p in pods)


def test_not_ready_pods_go_first():
    """Test 3 not-ready and 2 ready pods with diff 2 lose two not-ready pods."""
    pods = [
        make_pod("web-nr001", ready=False),
        make_pod("web-nr002", ready=False),
        make_pod("web-nr003", ready=False),
        make_pod("web-rd001", ready=True),
        make_pod("web-rd002", ready=True),
    ]
    chosen = choose_pods_to_delete(2, 0, [], pods)

    assert len(chosen) == 2
    assert all(not p.ready for p in chosen)


def test_newest_first_on_ties():
    """Test equally ranked pods are removed newest first."""
    pods = [
        make_pod("web-old01", age_minutes=300),
        make_pod("web-new01", age_minutes=1),
        make_pod("web-mid01", age_minutes=60),
    ]
    assert names(choose_pods_to_delete(2, 0, [], pods)) == ["web-mid01", "web-new01"]


def test_earlier_stages_first():
    """Test unscheduled and pending pods rank before running ones."""
    running = make_pod("web-run01", ready=False, phase="Running")
    pending = make_pod("web-pen01", ready=False, phase="Pending")
    unscheduled = make_pod("web-uns01", ready=False, phase="Pending", node_name=None)

    ordered = sorted([running, pending, unscheduled], key=active_pods_sort_key)
    assert [p.name for p in ordered] == ["web-uns01", "web-pen01", "web-run01"]


def test_surplus_current_revision_deleted_first():
    """Test a current-revision surplus is trimmed from not-updated pods."""
    not_updated = [make_pod(f"web-old0{i}", revision="rev-1") for i in range(4)]
    updated = [make_pod(f"web-new0{i}", revision="rev-2") for i in range(2)]

    chosen = choose_pods_to_delete(2, 2, not_updated, updated)
    assert all(p.labels["controller-revision-hash"] == "rev-1" for p in chosen)


def test_remainder_taken_from_other_revision():
    """Test a surplus smaller than the diff spills over to updated pods."""
    not_updated = [make_pod(f"web-old0{i}", revision="rev-1") for i in range(3)]
    updated = [make_pod(f"web-new0{i}", revision="rev-2") for i in range(3)]

    chosen = choose_pods_to_delete(3, 1, not_updated, updated)
    revisions = sorted(p.labels["controller-revision-hash"] for p in chosen)
    assert revisions == ["rev-1", "rev-2", "rev-2"]


def test_updated_bucket_short_falls_back_to_not_updated():
    """Test the other bucket fills in when the preferred one runs out."""
    not_updated = [make_pod("web-old01", revision="rev-1"), make_pod("web-old02", revision="rev-1")]
    updated = [make_pod("web-new01", revision="rev-2")]

    chosen = choose_pods_to_delete(2, 0, not_updated, updated)
    assert len(chosen) == 2
    assert "web-new01" in names(chosen)


def test_planned_deleted_pods():
    """Test explicit names, the delete label and PreparingDelete are all found."""
    cs = make_cloneset(pods_to_delete=["web-aaaaa", "web-gone1"])
    pods = [
        make_pod("web-aaaaa"),
        make_pod("web-bbbbb", labels={SPECIFIED_DELETE_LABEL: "true"}),
        make_pod("web-ccccc", lifecycle=LifecycleState.PREPARING_DELETE),
        make_pod("web-ddddd", lifecycle=LifecycleState.NORMAL),
    ]
    specified, pre_delete = get_planned_deleted_pods(cs, pods)

    assert names(specified) == ["web-aaaaa", "web-bbbbb"]
    assert names(pre_delete) == ["web-ccccc"]


def test_merge_pods_collapses_duplicates():
    a = make_pod("web-aaaaa")
    b = make_pod("web-bbbbb")
    assert [p.name for p in merge_pods([a, b], [b, a])] == ["web-aaaaa", "web-bbbbb"]
