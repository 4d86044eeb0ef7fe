"""
Scale control for CloneSets: creates and deletes pods and their claims so the
observed pods converge on the desired replicas and revision partition.
"""
import logging
import queue
import random
import threading
from typing import Callable, List, Optional, Set

from cloneset_utils import (
    get_controller_key,
    get_persistent_volume_claims,
    get_pod_names,
    new_versioned_pods,
    split_pods_by_revision,
)
from event_recorder import EVENT_TYPE_NORMAL, EVENT_TYPE_WARNING, EventRecorder
from expectations import ResourceVersionExpectations, ScaleAction, ScaleExpectations
from instance_ids import get_or_gen_available_ids
from kube_types import (
    INSTANCE_ID_LABEL,
    REVISION_HASH_LABEL,
    CloneSet,
    LifecycleState,
    PersistentVolumeClaim,
    Pod,
)
from lifecycle import is_pod_hooked, patch_pod_lifecycle, set_pod_lifecycle
from pod_deletion import choose_pods_to_delete, get_planned_deleted_pods, is_pod_specified_delete, merge_pods
from revision_diff import calculate_diffs
from slow_start import do_it_slowly

logger = logging.getLogger(__name__)

# When batching pod creates, the size of the initial batch
INITIAL_BATCH_SIZE = 1


class ScaleError(Exception):
    """Scaling failed; ``changed`` tells whether anything was mutated before the failure."""

    def __init__(self, message: str, changed: bool = False):
        super().__init__(message)
        self.changed = changed


def _always_ready(cs: CloneSet) -> bool:
    return True


class ScaleManager:
    """Creates and deletes the pods and claims of a CloneSet."""

    def __init__(self, store, recorder: EventRecorder,
                 scale_expectations: ScaleExpectations,
                 resource_version_expectations: ResourceVersionExpectations,
                 initial_batch_size: int = INITIAL_BATCH_SIZE,
                 ready_to_scale: Optional[Callable[[CloneSet], bool]] = None,
                 rng: Optional[random.Random] = None):
        """
        Args:
            store: ObjectStore issuing creates, deletes and patches
            recorder: Recorder for events on the CloneSet
            scale_expectations: Process-wide pending create/delete names
            resource_version_expectations: Process-wide post-patch versions
            initial_batch_size: First batch size of slow-start creation
            ready_to_scale: Returns False while a CloneSet must not scale
            rng: Random source for new instance-ids
        """
        self.store = store
        self.recorder = recorder
        self.scale_expectations = scale_expectations
        self.resource_version_expectations = resource_version_expectations
        self.initial_batch_size = initial_batch_size
        self.ready_to_scale = ready_to_scale or _always_ready
        self.rng = rng

    def manage(self, current_cs: CloneSet, update_cs: CloneSet,
               current_revision: str, update_revision: str,
               pods: List[Pod], pvcs: List[PersistentVolumeClaim]) -> bool:
        """
        Run one scaling pass.

        Args:
            current_cs: CloneSet holding the current revision's template
            update_cs: CloneSet holding the update revision's template
            current_revision: Current revision hash
            update_revision: Update revision hash
            pods: Active pods owned by the CloneSet
            pvcs: Claims owned by the CloneSet

        Returns:
            True if any pod was created, deleted or patched

        Raises:
            ScaleError: replicas is unset, or the object store rejected an
                action; ``changed`` reports partial progress
        """
        if update_cs.spec.replicas is None:
            raise ScaleError("spec.replicas is nil")

        controller_key = get_controller_key(update_cs)
        if not self.ready_to_scale(update_cs):
            logger.warning(f"CloneSet {controller_key} skip scaling for not ready to scale")
            return False

        updated_pods, not_updated_pods = split_pods_by_revision(pods, update_revision)
        diff, current_rev_diff = calculate_diffs(
            update_cs, update_revision == current_revision, len(pods), len(not_updated_pods)
        )

        # 1. scale out
        if diff < 0:
            expected_creations = -diff
            expected_current_creations = min(-current_rev_diff, expected_creations) if current_rev_diff < 0 else 0

            logger.debug(f"CloneSet {controller_key} begin to scale out {expected_creations} pods "
                         f"including {expected_current_creations} (current rev)")

            available_ids = get_or_gen_available_ids(expected_creations, pods, pvcs, rng=self.rng)
            existing_pvc_names = {pvc.name for pvc in pvcs}
            return self._create_pods(expected_creations, expected_current_creations,
                                     current_cs, update_cs, current_revision, update_revision,
                                     sorted(available_ids), existing_pvc_names)

        # 2. specified scale in
        pods_specified_to_delete, pods_in_pre_delete = get_planned_deleted_pods(update_cs, pods)
        pods_to_delete = merge_pods(pods_specified_to_delete, pods_in_pre_delete)
        if pods_to_delete:
            logger.debug(f"CloneSet {controller_key} find pods {get_pod_names(pods_specified_to_delete)} "
                         f"specified to delete and pods {get_pod_names(pods_in_pre_delete)} in preDelete")

            if self._manage_preparing_delete(update_cs, pods, pods_in_pre_delete, len(pods_to_delete)):
                return True
            if self._delete_pods(update_cs, pods_to_delete, pvcs):
                return True

        # 3. scale in
        if diff > 0:
            if pods_to_delete:
                logger.debug(f"CloneSet {controller_key} skip to scale in {diff} for existing pods to delete")
                return False

            logger.debug(f"CloneSet {controller_key} begin to scale in {diff} pods "
                         f"including {current_rev_diff} (current rev)")
            chosen = choose_pods_to_delete(diff, current_rev_diff, not_updated_pods, updated_pods)
            return self._delete_pods(update_cs, chosen, pvcs)

        return False

    def _manage_preparing_delete(self, cs: CloneSet, pods: List[Pod],
                                 pods_in_pre_delete: List[Pod], num_to_delete: int) -> bool:
        """Move hooked pods back to Normal while they are still needed."""
        diff = cs.spec.replicas - len(pods) + num_to_delete
        modified = False
        for pod in pods_in_pre_delete:
            if diff <= 0:
                return modified
            if is_pod_specified_delete(cs, pod):
                continue

            logger.debug(f"CloneSet {get_controller_key(cs)} patch pod {pod.name} lifecycle "
                         f"from PreparingDelete to Normal")
            try:
                result = patch_pod_lifecycle(self.store, pod, LifecycleState.NORMAL)
            except Exception as err:
                raise ScaleError(f"failed to patch pod {pod.name} lifecycle: {err}", changed=modified) from err
            if result.changed:
                modified = True
                self.resource_version_expectations.expect(result.obj)
            diff -= 1
        return modified

    def _create_pods(self, expected_creations: int, expected_current_creations: int,
                     current_cs: CloneSet, update_cs: CloneSet,
                     current_revision: str, update_revision: str,
                     available_ids: List[str], existing_pvc_names: Set[str]) -> bool:
        controller_key = get_controller_key(update_cs)
        new_pods = new_versioned_pods(current_cs, update_cs, current_revision, update_revision,
                                      expected_creations, expected_current_creations, available_ids)

        pods_to_create = queue.Queue()
        for pod in new_pods:
            self.scale_expectations.expect_scale(controller_key, ScaleAction.CREATE, pod.name)
            pods_to_create.put(pod)

        success_lock = threading.Lock()
        success_names = set()

        def create_next():
            pod = pods_to_create.get_nowait()
            cs = current_cs if pod.labels.get(REVISION_HASH_LABEL) == current_revision else update_cs
            set_pod_lifecycle(pod, LifecycleState.NORMAL)
            self._create_one_pod(cs, pod, existing_pvc_names)
            with success_lock:
                success_names.add(pod.name)

        created, err = do_it_slowly(len(new_pods), self.initial_batch_size, create_next)

        # The cache will never observe pods that failed or were never issued
        for pod in new_pods:
            if pod.name not in success_names:
                self.scale_expectations.observe_scale(controller_key, ScaleAction.CREATE, pod.name)

        if err is not None:
            raise ScaleError(f"created {created} of {len(new_pods)} pods: {err}", changed=created > 0) from err
        return created > 0

    def _create_one_pod(self, cs: CloneSet, pod: Pod, existing_pvc_names: Set[str]) -> None:
        controller_key = get_controller_key(cs)
        for claim in get_persistent_volume_claims(cs, pod):
            if claim.name in existing_pvc_names:
                continue
            self.scale_expectations.expect_scale(controller_key, ScaleAction.CREATE, claim.name)
            try:
                self.store.create(claim)
            except Exception as err:
                self.scale_expectations.observe_scale(controller_key, ScaleAction.CREATE, claim.name)
                self.recorder.event(cs, EVENT_TYPE_WARNING, "FailedCreate",
                                    f"failed to create pvc: {err}, pvc: {claim.name}")
                raise

        try:
            self.store.create(pod)
        except Exception as err:
            self.recorder.event(cs, EVENT_TYPE_WARNING, "FailedCreate",
                                f"failed to create pod: {err}, pod: {pod.name}")
            raise

        self.recorder.event(cs, EVENT_TYPE_NORMAL, "SuccessfulCreate", f"succeed to create pod {pod.name}")

    def _delete_pods(self, cs: CloneSet, pods_to_delete: List[Pod], pvcs: List[PersistentVolumeClaim]) -> bool:
        controller_key = get_controller_key(cs)
        modified = False
        for pod in pods_to_delete:
            if is_pod_hooked(cs.spec.pre_delete, pod):
                try:
                    result = patch_pod_lifecycle(self.store, pod, LifecycleState.PREPARING_DELETE)
                except Exception as err:
                    raise ScaleError(f"failed to patch pod {pod.name} lifecycle: {err}", changed=modified) from err
                if result.changed:
                    logger.debug(f"CloneSet {controller_key} scaling patch pod {pod.name} lifecycle to PreparingDelete")
                    modified = True
                    self.resource_version_expectations.expect(result.obj)
                continue

            self._delete_object(cs, pod, modified)
            modified = True
            self.recorder.event(cs, EVENT_TYPE_NORMAL, "SuccessfulDelete", f"succeed to delete pod {pod.name}")

            # delete pvcs which have the same instance-id
            instance_id = pod.labels.get(INSTANCE_ID_LABEL)
            if not instance_id:
                continue
            for pvc in pvcs:
                if pvc.labels.get(INSTANCE_ID_LABEL) != instance_id:
                    continue
                self._delete_object(cs, pvc, modified)

        return modified

    def _delete_object(self, cs: CloneSet, obj, modified: bool) -> None:
        controller_key = get_controller_key(cs)
        kind = "pod" if isinstance(obj, Pod) else "pvc"
        self.scale_expectations.expect_scale(controller_key, ScaleAction.DELETE, obj.name)
        try:
            self.store.delete(obj)
        except Exception as err:
            self.scale_expectations.observe_scale(controller_key, ScaleAction.DELETE, obj.name)
            self.recorder.event(cs, EVENT_TYPE_WARNING, "FailedDelete", f"failed to delete {kind} {obj.name}: {err}")
            raise ScaleError(f"failed to delete {kind} {obj.name}: {err}", changed=modified) from err
