"""
Kubernetes client for CloneSet scaling operations.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from adapters import pod_from_api, pod_to_body, pvc_from_api, pvc_to_body
from kube_types import PersistentVolumeClaim, Pod

logger = logging.getLogger(__name__)


class ObjectStore(ABC):
    """Create/delete/patch access to the objects a CloneSet manages."""

    @abstractmethod
    def create(self, obj) -> Any:
        """Create a Pod or PersistentVolumeClaim."""

    @abstractmethod
    def delete(self, obj) -> None:
        """Delete a Pod or PersistentVolumeClaim."""

    @abstractmethod
    def patch(self, obj, body: Dict[str, Any]) -> Any:
        """Apply a merge patch to a Pod and return the patched object."""


class KubeClient(ObjectStore):
    """Kubernetes client for controller operations."""

    def __init__(self, namespace: str, in_cluster: bool = True, context: str | None = None,
                 cloneset_group: str = "apps.kruise.io", cloneset_version: str = "v1alpha1",
                 cloneset_plural: str = "clonesets"):
        """
        Initialize Kubernetes client.

        Args:
            namespace: Default Kubernetes namespace
            in_cluster: Whether running inside cluster (default: True)
            context: Kubernetes context name (optional)
            cloneset_group: API group of the CloneSet resource
            cloneset_version: API version of the CloneSet resource
            cloneset_plural: Plural resource name of the CloneSet resource
        """
        self.namespace = namespace
        self.in_cluster = in_cluster
        self.cloneset_group = cloneset_group
        self.cloneset_version = cloneset_version
        self.cloneset_plural = cloneset_plural

        try:
            if in_cluster:
                config.load_incluster_config()
            else:
                if context:
                    config.load_kube_config(context=context)
                else:
                    config.load_kube_config()

            self.v1 = client.CoreV1Api()
            self.apps_v1 = client.AppsV1Api()
            self.custom = client.CustomObjectsApi()
            logger.info(f"✅ Kubernetes client initialized for namespace: {namespace}")

        except Exception as e:
            logger.error(f"❌ Failed to initialize Kubernetes client: {e}")
            raise

    # ------------------------------------------------------------------
    # ObjectStore
    # ------------------------------------------------------------------
    def create(self, obj):
        """
        Create a pod or claim.

        Args:
            obj: Pod or PersistentVolumeClaim to create

        Returns:
            The created object as stored by the API server
        """
        try:
            if isinstance(obj, Pod):
                created = self.v1.create_namespaced_pod(namespace=obj.namespace, body=pod_to_body(obj))
                logger.info(f"Created pod {obj.namespace}/{obj.name}")
                return pod_from_api(created)
            if isinstance(obj, PersistentVolumeClaim):
                created = self.v1.create_namespaced_persistent_volume_claim(
                    namespace=obj.namespace, body=pvc_to_body(obj)
                )
                logger.info(f"Created pvc {obj.namespace}/{obj.name}")
                return pvc_from_api(created)
            raise TypeError(f"Unsupported object type {type(obj).__name__}")

        except ApiException as e:
            logger.error(f"Failed to create {obj.namespace}/{obj.name}: {e}")
            raise

    def delete(self, obj) -> None:
        """
        Delete a pod or claim.

        Args:
            obj: Pod or PersistentVolumeClaim to delete
        """
        try:
            if isinstance(obj, Pod):
                self.v1.delete_namespaced_pod(name=obj.name, namespace=obj.namespace)
            elif isinstance(obj, PersistentVolumeClaim):
                self.v1.delete_namespaced_persistent_volume_claim(name=obj.name, namespace=obj.namespace)
            else:
                raise TypeError(f"Unsupported object type {type(obj).__name__}")
            logger.info(f"Deleted {type(obj).__name__} {obj.namespace}/{obj.name}")

        except ApiException as e:
            logger.error(f"Failed to delete {obj.namespace}/{obj.name}: {e}")
            raise

    def patch(self, obj, body: Dict[str, Any]):
        """
        Patch a pod's metadata.

        Args:
            obj: Pod to patch
            body: Patch body

        Returns:
            The patched pod, carrying its new resource version
        """
        if not isinstance(obj, Pod):
            raise TypeError(f"Unsupported object type {type(obj).__name__}")
        try:
            patched = self.v1.patch_namespaced_pod(name=obj.name, namespace=obj.namespace, body=body)
            logger.info(f"Patched pod {obj.namespace}/{obj.name}")
            return pod_from_api(patched)

        except ApiException as e:
            logger.error(f"Failed to patch pod {obj.namespace}/{obj.name}: {e}")
            raise

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_cloneset(self, name: str, namespace: str | None = None) -> Dict[str, Any]:
        """
        Get a CloneSet custom object.

        Args:
            name: CloneSet name
            namespace: Namespace (defaults to the client namespace)

        Returns:
            CloneSet object as a dictionary
        """
        namespace = namespace or self.namespace
        try:
            return self.custom.get_namespaced_custom_object(
                group=self.cloneset_group,
                version=self.cloneset_version,
                namespace=namespace,
                plural=self.cloneset_plural,
                name=name,
            )
        except ApiException as e:
            logger.error(f"Failed to get CloneSet {namespace}/{name}: {e}")
            raise

    def get_pods(self, namespace: str | None = None, label_selector: str | None = None) -> List[Pod]:
        """
        Get pods in the namespace.

        Args:
            namespace: Namespace (defaults to the client namespace)
            label_selector: Optional label selector for filtering

        Returns:
            List of Pod objects
        """
        namespace = namespace or self.namespace
        try:
            pods = self.v1.list_namespaced_pod(namespace=namespace, label_selector=label_selector)
            pod_list = [pod_from_api(pod) for pod in pods.items]
            logger.debug(f"Retrieved {len(pod_list)} pods from namespace {namespace}")
            return pod_list

        except ApiException as e:
            logger.error(f"Failed to get pods: {e}")
            raise

    def get_pvcs(self, namespace: str | None = None, label_selector: str | None = None) -> List[PersistentVolumeClaim]:
        """
        Get persistent volume claims in the namespace.

        Args:
            namespace: Namespace (defaults to the client namespace)
            label_selector: Optional label selector for filtering

        Returns:
            List of PersistentVolumeClaim objects
        """
        namespace = namespace or self.namespace
        try:
            pvcs = self.v1.list_namespaced_persistent_volume_claim(
                namespace=namespace, label_selector=label_selector
            )
            pvc_list = [pvc_from_api(pvc) for pvc in pvcs.items]
            logger.debug(f"Retrieved {len(pvc_list)} pvcs from namespace {namespace}")
            return pvc_list

        except ApiException as e:
            logger.error(f"Failed to get pvcs: {e}")
            raise

    def get_controller_revision_data(self, name: str, namespace: str | None = None) -> Optional[Dict[str, Any]]:
        """
        Get the data of a ControllerRevision.

        Args:
            name: ControllerRevision name
            namespace: Namespace (defaults to the client namespace)

        Returns:
            Revision data, or None when the revision does not exist
        """
        namespace = namespace or self.namespace
        try:
            revision = self.apps_v1.read_namespaced_controller_revision(name=name, namespace=namespace)
            return revision.data

        except ApiException as e:
            if e.status == 404:
                logger.warning(f"ControllerRevision {namespace}/{name} not found")
                return None
            logger.error(f"Failed to get ControllerRevision {namespace}/{name}: {e}")
            raise

    def create_event(self, namespace: str, event: client.CoreV1Event) -> None:
        """
        Create an event record.

        Args:
            namespace: Namespace of the involved object
            event: Event to create
        """
        try:
            self.v1.create_namespaced_event(namespace=namespace, body=event)

        except ApiException as e:
            logger.error(f"Failed to create event in {namespace}: {e}")
            raise
