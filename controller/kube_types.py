"""
Type definitions for CloneSet-managed Kubernetes objects.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


# Label/annotation keys shared with the cluster
REVISION_HASH_LABEL = "controller-revision-hash"
INSTANCE_ID_LABEL = "apps.kruise.io/cloneset-instance-id"
SPECIFIED_DELETE_LABEL = "apps.kruise.io/specified-delete"
LIFECYCLE_STATE_KEY = "lifecycle.apps.kruise.io/state"
LIFECYCLE_TIMESTAMP_KEY = "lifecycle.apps.kruise.io/timestamp"

# Length of the instance-id carried by a pod and its claims
INSTANCE_ID_LENGTH = 5


class LifecycleState(str, Enum):
    """Pod lifecycle states encoded in the lifecycle-state label."""
    NORMAL = "Normal"
    PREPARING_DELETE = "PreparingDelete"


@dataclass
class OwnerReference:
    """Reference from a managed object to its CloneSet."""
    api_version: str
    kind: str
    name: str
    uid: str
    controller: bool = True
    block_owner_deletion: bool = True


@dataclass
class Pod:
    """Kubernetes Pod representation."""
    name: str
    namespace: str
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    phase: str = "Pending"
    ready: bool = False
    node_name: Optional[str] = None
    restart_count: int = 0
    finalizers: List[str] = field(default_factory=list)
    spec: Dict[str, Any] = field(default_factory=dict)
    owner_references: List[OwnerReference] = field(default_factory=list)
    creation_timestamp: Optional[datetime] = None
    deletion_timestamp: Optional[datetime] = None
    resource_version: Optional[str] = None
    uid: Optional[str] = None


@dataclass
class PersistentVolumeClaim:
    """Kubernetes PersistentVolumeClaim representation."""
    name: str
    namespace: str
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    spec: Dict[str, Any] = field(default_factory=dict)
    owner_references: List[OwnerReference] = field(default_factory=list)
    deletion_timestamp: Optional[datetime] = None
    resource_version: Optional[str] = None
    uid: Optional[str] = None


@dataclass
class LifecycleHook:
    """Hook that defers an action until its handlers are released.

    A pod is hooked when it carries any of the labels in ``labels_handler``
    or any of the finalizers in ``finalizers_handler``.
    """
    labels_handler: Dict[str, str] = field(default_factory=dict)
    finalizers_handler: List[str] = field(default_factory=list)


@dataclass
class CloneSetSpec:
    """Desired state of a CloneSet."""
    replicas: Optional[int]
    template: Dict[str, Any] = field(default_factory=dict)
    volume_claim_templates: List[Dict[str, Any]] = field(default_factory=list)
    selector: Dict[str, str] = field(default_factory=dict)
    partition: Optional[int] = None
    pods_to_delete: List[str] = field(default_factory=list)
    pre_delete: Optional[LifecycleHook] = None


@dataclass
class CloneSetStatus:
    """Observed revisions of a CloneSet."""
    current_revision: Optional[str] = None
    update_revision: Optional[str] = None


@dataclass
class CloneSet:
    """CloneSet custom resource representation."""
    name: str
    namespace: str
    spec: CloneSetSpec
    status: CloneSetStatus = field(default_factory=CloneSetStatus)
    uid: Optional[str] = None
    api_version: str = "apps.kruise.io/v1alpha1"
    kind: str = "CloneSet"


@dataclass
class PatchResult:
    """Outcome of a patch that may be a no-op."""
    changed: bool
    obj: Optional[Any] = None
