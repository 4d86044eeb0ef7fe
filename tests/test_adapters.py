"""Unit tests for API object adapters."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from kubernetes import client

from adapters import CloneSetAdapters, apply_revision, cloneset_from_api, pod_from_api, pod_to_body
from conftest import make_pod, make_pvc

pytestmark = [pytest.mark.unit]

CLONESET = {
    "apiVersion": "apps.kruise.io/v1alpha1",
    "kind": "CloneSet",
    "metadata": {"name": "web", "namespace": "default", "uid": "cs-uid"},
    "spec": {
        "replicas": 4,
        "selector": {"matchLabels": {"app": "web"}},
        "template": {"metadata": {"labels": {"app": "web"}},
                     "spec": {"containers": [{"name": "main", "image": "nginx:2.0"}]}},
        "volumeClaimTemplates": [{"metadata": {"name": "data"}, "spec": {}}],
        "updateStrategy": {"partition": "50%"},
        "scaleStrategy": {"podsToDelete": ["web-aaaaa"]},
        "lifecycle": {"preDelete": {"labelsHandler": {"example.com/hold": "true"}}},
    },
    "status": {"currentRevision": "web-rev1", "updateRevision": "web-rev2"},
}


def test_cloneset_from_api():
    """Test the custom object dictionary maps onto CloneSet."""
    cs = cloneset_from_api(CLONESET)

    assert cs.spec.replicas == 4
    assert cs.spec.partition == 2
    assert cs.spec.selector == {"app": "web"}
    assert cs.spec.pods_to_delete == ["web-aaaaa"]
    assert cs.spec.pre_delete.labels_handler == {"example.com/hold": "true"}
    assert cs.status.current_revision == "web-rev1"
    assert cs.status.update_revision == "web-rev2"


def test_cloneset_without_replicas():
    obj = {**CLONESET, "spec": {"template": {}}}
    cs = cloneset_from_api(obj)
    assert cs.spec.replicas is None
    assert cs.spec.partition is None
    assert cs.spec.pre_delete is None


def test_pod_from_api():
    """Test readiness, restarts and metadata are read from a V1Pod."""
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)
    v1pod = client.V1Pod(
        metadata=client.V1ObjectMeta(
            name="web-aaaaa", namespace="default", labels={"app": "web"}, resource_version="42",
            uid="pod-uid", creation_timestamp=created,
            owner_references=[client.V1OwnerReference(api_version="apps.kruise.io/v1alpha1", kind="CloneSet",
                                                      name="web", uid="cs-uid", controller=True)],
        ),
        spec=client.V1PodSpec(node_name="node-1", containers=[client.V1Container(name="main", image="nginx")]),
        status=client.V1PodStatus(
            phase="Running",
            conditions=[client.V1PodCondition(type="Ready", status="True")],
            container_statuses=[client.V1ContainerStatus(name="main", image="nginx", image_id="", ready=True,
                                                         restart_count=3)],
        ),
    )
    pod = pod_from_api(v1pod)

    assert pod.ready is True
    assert pod.restart_count == 3
    assert pod.node_name == "node-1"
    assert pod.resource_version == "42"
    assert pod.owner_references[0].uid == "cs-uid"
    assert pod.spec["containers"][0]["image"] == "nginx"


def test_pod_to_body_carries_owner():
    body = pod_to_body(make_pod("web-aaaaa"))
    assert body["metadata"]["ownerReferences"][0]["uid"] == "cs-uid"
    assert body["metadata"]["labels"]["app"] == "web"


def test_apply_revision_replaces_template():
    """Test the stored revision template replaces the update template."""
    cs = cloneset_from_api(CLONESET)
    data = {"spec": {"template": {"$patch": "replace", "spec": {"containers": [{"name": "main",
                                                                               "image": "nginx:1.0"}]}}}}
    current = apply_revision(cs, data)

    assert current.spec.template == {"spec": {"containers": [{"name": "main", "image": "nginx:1.0"}]}}
    assert cs.spec.template["spec"]["containers"][0]["image"] == "nginx:2.0"


def test_get_revisions_reads_controller_revision():
    kube_client = MagicMock()
    kube_client.get_controller_revision_data.return_value = {"spec": {"template": {"spec": {}}}}
    cs = cloneset_from_api(CLONESET)

    current, current_revision, update_revision = CloneSetAdapters(kube_client).get_revisions(cs)

    kube_client.get_controller_revision_data.assert_called_once_with("web-rev1", "default")
    assert (current_revision, update_revision) == ("web-rev1", "web-rev2")
    assert current.spec.template == {"spec": {}}


def test_get_owned_objects_filters_by_owner():
    """Test only objects controlled by this CloneSet are returned."""
    mine = make_pod("web-aaaaa")
    foreign = make_pod("web-bbbbb")
    foreign.owner_references[0].uid = "other-uid"
    kube_client = MagicMock()
    kube_client.get_pods.return_value = [mine, foreign]
    kube_client.get_pvcs.return_value = [make_pvc("data-web-aaaaa", "aaaaa")]

    pods, pvcs = CloneSetAdapters(kube_client).get_owned_objects(cloneset_from_api(CLONESET))

    assert [p.name for p in pods] == ["web-aaaaa"]
    assert [c.name for c in pvcs] == ["data-web-aaaaa"]
    kube_client.get_pods.assert_called_once_with("default", "app=web")
