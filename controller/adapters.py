"""
Adapters between Kubernetes API objects and CloneSet controller types.
"""
import copy
import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from kubernetes import client

from kube_types import (
    CloneSet,
    CloneSetSpec,
    CloneSetStatus,
    LifecycleHook,
    OwnerReference,
    PersistentVolumeClaim,
    Pod,
)

logger = logging.getLogger(__name__)

_serializer = client.ApiClient()


def _owner_refs_from_api(refs) -> List[OwnerReference]:
    return [
        OwnerReference(
            api_version=ref.api_version,
            kind=ref.kind,
            name=ref.name,
            uid=ref.uid,
            controller=bool(ref.controller),
            block_owner_deletion=bool(ref.block_owner_deletion),
        )
        for ref in refs or []
    ]


def _owner_refs_to_body(refs: List[OwnerReference]) -> List[Dict[str, Any]]:
    return [
        {
            "apiVersion": ref.api_version,
            "kind": ref.kind,
            "name": ref.name,
            "uid": ref.uid,
            "controller": ref.controller,
            "blockOwnerDeletion": ref.block_owner_deletion,
        }
        for ref in refs
    ]


def _is_ready(status) -> bool:
    for condition in (status.conditions if status else None) or []:
        if condition.type == "Ready":
            return condition.status == "True"
    return False


def pod_from_api(pod: client.V1Pod) -> Pod:
    """Convert a V1Pod into a Pod."""
    metadata = pod.metadata
    status = pod.status
    restarts = sum(cs.restart_count or 0 for cs in (status.container_statuses if status else None) or [])
    return Pod(
        name=metadata.name,
        namespace=metadata.namespace,
        labels=dict(metadata.labels or {}),
        annotations=dict(metadata.annotations or {}),
        phase=(status.phase if status else None) or "Pending",
        ready=_is_ready(status),
        node_name=pod.spec.node_name if pod.spec else None,
        restart_count=restarts,
        finalizers=list(metadata.finalizers or []),
        spec=_serializer.sanitize_for_serialization(pod.spec) or {},
        owner_references=_owner_refs_from_api(metadata.owner_references),
        creation_timestamp=metadata.creation_timestamp,
        deletion_timestamp=metadata.deletion_timestamp,
        resource_version=metadata.resource_version,
        uid=metadata.uid,
    )


def pvc_from_api(pvc: client.V1PersistentVolumeClaim) -> PersistentVolumeClaim:
    """Convert a V1PersistentVolumeClaim into a PersistentVolumeClaim."""
    metadata = pvc.metadata
    return PersistentVolumeClaim(
        name=metadata.name,
        namespace=metadata.namespace,
        labels=dict(metadata.labels or {}),
        annotations=dict(metadata.annotations or {}),
        spec=_serializer.sanitize_for_serialization(pvc.spec) or {},
        owner_references=_owner_refs_from_api(metadata.owner_references),
        deletion_timestamp=metadata.deletion_timestamp,
        resource_version=metadata.resource_version,
        uid=metadata.uid,
    )


def pod_to_body(pod: Pod) -> Dict[str, Any]:
    """Manifest used to create a pod."""
    metadata = {
        "name": pod.name,
        "namespace": pod.namespace,
        "labels": pod.labels,
        "annotations": pod.annotations,
        "ownerReferences": _owner_refs_to_body(pod.owner_references),
    }
    if pod.finalizers:
        metadata["finalizers"] = pod.finalizers
    return {"apiVersion": "v1", "kind": "Pod", "metadata": metadata, "spec": pod.spec}


def pvc_to_body(pvc: PersistentVolumeClaim) -> Dict[str, Any]:
    """Manifest used to create a claim."""
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": {
            "name": pvc.name,
            "namespace": pvc.namespace,
            "labels": pvc.labels,
            "annotations": pvc.annotations,
            "ownerReferences": _owner_refs_to_body(pvc.owner_references),
        },
        "spec": pvc.spec,
    }


def _parse_partition(value, replicas: Optional[int]) -> Optional[int]:
    # Partition is either a count or a percentage of replicas, rounded up
    if value is None:
        return None
    if isinstance(value, str) and value.endswith("%"):
        return math.ceil((replicas or 0) * int(value[:-1]) / 100)
    return int(value)


def cloneset_from_api(obj: Dict[str, Any]) -> CloneSet:
    """Convert a CloneSet custom object dictionary into a CloneSet."""
    metadata = obj.get("metadata", {})
    spec = obj.get("spec", {})
    status = obj.get("status") or {}
    replicas = spec.get("replicas")

    pre_delete = None
    hook = (spec.get("lifecycle") or {}).get("preDelete")
    if hook:
        pre_delete = LifecycleHook(
            labels_handler=dict(hook.get("labelsHandler") or {}),
            finalizers_handler=list(hook.get("finalizersHandler") or []),
        )

    return CloneSet(
        name=metadata["name"],
        namespace=metadata["namespace"],
        uid=metadata.get("uid"),
        api_version=obj.get("apiVersion", "apps.kruise.io/v1alpha1"),
        kind=obj.get("kind", "CloneSet"),
        spec=CloneSetSpec(
            replicas=replicas,
            template=spec.get("template") or {},
            volume_claim_templates=list(spec.get("volumeClaimTemplates") or []),
            selector=dict((spec.get("selector") or {}).get("matchLabels") or {}),
            partition=_parse_partition((spec.get("updateStrategy") or {}).get("partition"), replicas),
            pods_to_delete=list((spec.get("scaleStrategy") or {}).get("podsToDelete") or []),
            pre_delete=pre_delete,
        ),
        status=CloneSetStatus(
            current_revision=status.get("currentRevision"),
            update_revision=status.get("updateRevision"),
        ),
    )


def apply_revision(cs: CloneSet, data: Optional[Dict[str, Any]]) -> CloneSet:
    """CloneSet with its template replaced by the one stored in revision ``data``."""
    revised = copy.deepcopy(cs)
    template = ((data or {}).get("spec") or {}).get("template")
    if template:
        template = {k: v for k, v in template.items() if k != "$patch"}
        revised.spec.template = template
    return revised


def _selector_string(selector: Dict[str, str]) -> Optional[str]:
    if not selector:
        return None
    return ",".join(f"{k}={v}" for k, v in sorted(selector.items()))


def _owned_by(obj, cs: CloneSet) -> bool:
    return any(ref.controller and ref.uid == cs.uid for ref in obj.owner_references)


class CloneSetAdapters:
    """Adapters for reading CloneSets and the objects they own."""

    def __init__(self, kube_client):
        self.kube_client = kube_client

    def get_cloneset(self, namespace: str, name: str) -> CloneSet:
        return cloneset_from_api(self.kube_client.get_cloneset(name, namespace))

    def get_revisions(self, cs: CloneSet) -> Tuple[CloneSet, str, str]:
        """
        Resolve the current revision's CloneSet.

        Returns:
            Tuple of (current CloneSet, current revision, update revision)
        """
        update_revision = cs.status.update_revision or ""
        current_revision = cs.status.current_revision or update_revision
        if current_revision == update_revision:
            return cs, current_revision, update_revision

        data = self.kube_client.get_controller_revision_data(current_revision, cs.namespace)
        if data is None:
            logger.warning(f"Revision {current_revision} of {cs.namespace}/{cs.name} missing, using update template")
        return apply_revision(cs, data), current_revision, update_revision

    def get_owned_objects(self, cs: CloneSet) -> Tuple[List[Pod], List[PersistentVolumeClaim]]:
        """List the pods and claims controlled by ``cs``."""
        selector = _selector_string(cs.spec.selector)
        pods = [p for p in self.kube_client.get_pods(cs.namespace, selector) if _owned_by(p, cs)]
        pvcs = [c for c in self.kube_client.get_pvcs(cs.namespace, selector) if _owned_by(c, cs)]
        return pods, pvcs
