"""
Helpers building and classifying CloneSet pods and claims.
"""
import copy
from typing import Iterable, List, Tuple

from kube_types import (
    INSTANCE_ID_LABEL,
    REVISION_HASH_LABEL,
    CloneSet,
    OwnerReference,
    PersistentVolumeClaim,
    Pod,
)


def get_controller_key(cs: CloneSet) -> str:
    return f"{cs.namespace}/{cs.name}"


def owner_reference(cs: CloneSet) -> OwnerReference:
    return OwnerReference(api_version=cs.api_version, kind=cs.kind, name=cs.name, uid=cs.uid)


def split_pods_by_revision(pods: List[Pod], revision: str) -> Tuple[List[Pod], List[Pod]]:
    """Split pods into (matching ``revision``, not matching)."""
    matched, unmatched = [], []
    for pod in pods:
        if pod.labels.get(REVISION_HASH_LABEL) == revision:
            matched.append(pod)
        else:
            unmatched.append(pod)
    return matched, unmatched


def get_pod_names(pods: Iterable[Pod]) -> List[str]:
    return sorted(pod.name for pod in pods)


def _claim_name(template_name: str, cs: CloneSet, instance_id: str) -> str:
    return f"{template_name}-{cs.name}-{instance_id}"


def get_persistent_volume_claims(cs: CloneSet, pod: Pod) -> List[PersistentVolumeClaim]:
    """Claims a pod of ``cs`` needs, one per volume claim template."""
    instance_id = pod.labels.get(INSTANCE_ID_LABEL)
    claims = []
    for template in cs.spec.volume_claim_templates:
        metadata = template.get("metadata", {})
        labels = dict(metadata.get("labels") or {})
        labels.update(cs.spec.selector)
        labels[INSTANCE_ID_LABEL] = instance_id
        claims.append(PersistentVolumeClaim(
            name=_claim_name(metadata["name"], cs, instance_id),
            namespace=cs.namespace,
            labels=labels,
            annotations=dict(metadata.get("annotations") or {}),
            spec=copy.deepcopy(template.get("spec", {})),
            owner_references=[owner_reference(cs)],
        ))
    return claims


def _new_pod(cs: CloneSet, revision: str, instance_id: str) -> Pod:
    template = cs.spec.template
    metadata = template.get("metadata", {})
    labels = dict(metadata.get("labels") or {})
    labels[REVISION_HASH_LABEL] = revision
    labels[INSTANCE_ID_LABEL] = instance_id

    spec = copy.deepcopy(template.get("spec", {}))
    claim_volumes = []
    for claim_template in cs.spec.volume_claim_templates:
        name = claim_template["metadata"]["name"]
        claim_volumes.append({
            "name": name,
            "persistentVolumeClaim": {"claimName": _claim_name(name, cs, instance_id)},
        })
    if claim_volumes:
        claim_names = {v["name"] for v in claim_volumes}
        volumes = [v for v in spec.get("volumes", []) if v.get("name") not in claim_names]
        spec["volumes"] = volumes + claim_volumes

    return Pod(
        name=f"{cs.name}-{instance_id}",
        namespace=cs.namespace,
        labels=labels,
        annotations=dict(metadata.get("annotations") or {}),
        finalizers=list(metadata.get("finalizers") or []),
        spec=spec,
        owner_references=[owner_reference(cs)],
    )


def new_versioned_pods(current_cs: CloneSet, update_cs: CloneSet,
                       current_revision: str, update_revision: str,
                       expected_creations: int, expected_current_creations: int,
                       available_ids: List[str]) -> List[Pod]:
    """
    Build the pods to create.

    The first ``expected_current_creations`` pods use the current revision's
    template, the rest the update revision's.
    """
    if len(available_ids) < expected_creations:
        raise ValueError(f"need {expected_creations} instance-ids, got {len(available_ids)}")

    pods = []
    for i, instance_id in enumerate(available_ids[:expected_creations]):
        if i < expected_current_creations:
            pods.append(_new_pod(current_cs, current_revision, instance_id))
        else:
            pods.append(_new_pod(update_cs, update_revision, instance_id))
    return pods
