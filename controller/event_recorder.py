"""
Event records attached to CloneSets for operator visibility.
"""
import logging
from datetime import datetime, timezone

from kubernetes import client
from kubernetes.client.rest import ApiException

from kube_types import CloneSet

logger = logging.getLogger(__name__)

EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"


class EventRecorder:
    """Records events by logging them."""

    def event(self, cs: CloneSet, event_type: str, reason: str, message: str) -> None:
        level = logging.WARNING if event_type == EVENT_TYPE_WARNING else logging.INFO
        logger.log(level, f"CloneSet {cs.namespace}/{cs.name} {reason}: {message}")


class KubeEventRecorder(EventRecorder):
    """Records events as Kubernetes Event objects.

    Events are advisory: a failure to write one is logged and dropped so it
    never changes the outcome of a reconcile.
    """

    def __init__(self, kube_client, component: str = "cloneset-controller"):
        self.kube_client = kube_client
        self.component = component

    def event(self, cs: CloneSet, event_type: str, reason: str, message: str) -> None:
        super().event(cs, event_type, reason, message)
        now = datetime.now(timezone.utc)
        body = client.CoreV1Event(
            metadata=client.V1ObjectMeta(generate_name=f"{cs.name}.", namespace=cs.namespace),
            involved_object=client.V1ObjectReference(
                api_version=cs.api_version,
                kind=cs.kind,
                name=cs.name,
                namespace=cs.namespace,
                uid=cs.uid,
            ),
            reason=reason,
            message=message,
            type=event_type,
            source=client.V1EventSource(component=self.component),
            first_timestamp=now,
            last_timestamp=now,
            count=1,
        )
        try:
            self.kube_client.create_event(cs.namespace, body)
        except ApiException as e:
            logger.warning(f"Dropped event {reason} for {cs.namespace}/{cs.name}: {e}")
