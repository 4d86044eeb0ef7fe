"""Shared fixtures: an in-memory object store, a recording event recorder and
builders for CloneSets, pods and claims."""

import dataclasses
import itertools
import threading
from datetime import datetime, timedelta, timezone

import pytest
from kubernetes.client.rest import ApiException

from cloneset_scale import ScaleManager
from event_recorder import EventRecorder
from expectations import ResourceVersionExpectations, ScaleExpectations
from kube_client import ObjectStore
from kube_types import (
    INSTANCE_ID_LABEL,
    LIFECYCLE_STATE_KEY,
    REVISION_HASH_LABEL,
    CloneSet,
    CloneSetSpec,
    CloneSetStatus,
    OwnerReference,
    PersistentVolumeClaim,
    Pod,
)

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeObjectStore(ObjectStore):
    """Records every call; names in the fail_* sets are rejected."""

    def __init__(self):
        self._lock = threading.Lock()
        self._versions = itertools.count(1000)
        self.created = []
        self.deleted = []
        self.patched = []
        self.fail_create = set()
        self.fail_delete = set()
        self.fail_patch = set()

    def create(self, obj):
        with self._lock:
            if obj.name in self.fail_create:
                raise ApiException(status=403, reason=f"quota exceeded for {obj.name}")
            self.created.append(obj)
            return obj

    def delete(self, obj):
        with self._lock:
            if obj.name in self.fail_delete:
                raise ApiException(status=500, reason=f"cannot delete {obj.name}")
            self.deleted.append(obj)

    def patch(self, obj, body):
        with self._lock:
            if obj.name in self.fail_patch:
                raise ApiException(status=409, reason=f"conflict on {obj.name}")
            metadata = body.get("metadata", {})
            patched = dataclasses.replace(
                obj,
                labels={**obj.labels, **metadata.get("labels", {})},
                annotations={**obj.annotations, **metadata.get("annotations", {})},
                resource_version=str(next(self._versions)),
            )
            self.patched.append((patched, body))
            return patched

    def created_pods(self):
        return [o for o in self.created if isinstance(o, Pod)]

    def created_pvcs(self):
        return [o for o in self.created if isinstance(o, PersistentVolumeClaim)]

    def deleted_names(self):
        return [o.name for o in self.deleted]


class FakeRecorder(EventRecorder):
    def __init__(self):
        self.events = []

    def event(self, cs, event_type, reason, message):
        self.events.append((event_type, reason, message))

    def reasons(self):
        return [reason for _, reason, _ in self.events]


def make_cloneset(replicas=3, name="web", namespace="default", partition=None,
                  pods_to_delete=None, pre_delete=None, volume_claim_templates=None,
                  current_revision="rev-1", update_revision="rev-1", image="nginx:1.0"):
    return CloneSet(
        name=name,
        namespace=namespace,
        uid="cs-uid",
        spec=CloneSetSpec(
            replicas=replicas,
            template={
                "metadata": {"labels": {"app": name}},
                "spec": {"containers": [{"name": "main", "image": image}]},
            },
            volume_claim_templates=volume_claim_templates or [],
            selector={"app": name},
            partition=partition,
            pods_to_delete=pods_to_delete or [],
            pre_delete=pre_delete,
        ),
        status=CloneSetStatus(current_revision=current_revision, update_revision=update_revision),
    )


def make_pod(name, revision="rev-1", instance_id=None, ready=True, phase="Running",
             age_minutes=60, lifecycle=None, labels=None, node_name="node-1", cs_name="web"):
    pod_labels = {
        "app": cs_name,
        REVISION_HASH_LABEL: revision,
        INSTANCE_ID_LABEL: instance_id or name[-5:],
    }
    if lifecycle is not None:
        pod_labels[LIFECYCLE_STATE_KEY] = lifecycle.value
    pod_labels.update(labels or {})
    return Pod(
        name=name,
        namespace="default",
        labels=pod_labels,
        phase=phase,
        ready=ready,
        node_name=node_name,
        owner_references=[OwnerReference(api_version="apps.kruise.io/v1alpha1", kind="CloneSet",
                                          name=cs_name, uid="cs-uid")],
        creation_timestamp=BASE_TIME - timedelta(minutes=age_minutes),
        resource_version="10",
        uid=f"uid-{name}",
    )


def make_pvc(name, instance_id, cs_name="web"):
    return PersistentVolumeClaim(
        name=name,
        namespace="default",
        labels={"app": cs_name, INSTANCE_ID_LABEL: instance_id},
        owner_references=[OwnerReference(api_version="apps.kruise.io/v1alpha1", kind="CloneSet",
                                          name=cs_name, uid="cs-uid")],
        resource_version="10",
        uid=f"uid-{name}",
    )


@pytest.fixture
def store():
    return FakeObjectStore()


@pytest.fixture
def recorder():
    return FakeRecorder()


@pytest.fixture
def scale_expectations():
    return ScaleExpectations()


@pytest.fixture
def resource_version_expectations():
    return ResourceVersionExpectations()



@pytest.fixture
def manager(store, recorder, scale_expectations, resource_version_expectations):
    return ScaleManager(store, recorder, scale_expectations, resource_version_expectations)
