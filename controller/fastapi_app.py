# fastapi_app.py
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from kubernetes.client.rest import ApiException
from pydantic import BaseModel, Field

from adapters import CloneSetAdapters
from cloneset_scale import ScaleManager
from config import settings
from event_recorder import EventRecorder, KubeEventRecorder
from expectations import ResourceVersionExpectations, ScaleExpectations
from kube_client import KubeClient
from reconciler import CloneSetReconciler

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

# Expectations outlive every reconcile in this process
scale_expectations = ScaleExpectations()
resource_version_expectations = ResourceVersionExpectations()

# Try to initialize Kubernetes client, but don't fail if it's not available
try:
    kube_client = KubeClient(
        namespace=settings.K8S_NAMESPACE,
        in_cluster=settings.K8S_IN_CLUSTER,
        context=settings.K8S_CONTEXT,
        cloneset_group=settings.CLONESET_GROUP,
        cloneset_version=settings.CLONESET_VERSION,
        cloneset_plural=settings.CLONESET_PLURAL,
    )
    recorder = KubeEventRecorder(kube_client) if settings.EVENTS_ENABLED else EventRecorder()
    reconciler = CloneSetReconciler(
        adapters=CloneSetAdapters(kube_client),
        scale_manager=ScaleManager(
            kube_client,
            recorder,
            scale_expectations,
            resource_version_expectations,
            initial_batch_size=settings.SCALE_INITIAL_BATCH_SIZE,
        ),
        scale_expectations=scale_expectations,
        resource_version_expectations=resource_version_expectations,
        expectation_timeout=settings.EXPECTATION_TIMEOUT_SECS,
    )
    logger.info(f"✅ CloneSet reconciler initialized ({settings.APP_ENV})")
except Exception as e:
    logger.warning(f"⚠️ Kubernetes client initialization failed: {e}. Reconcile endpoints disabled.")
    kube_client = None
    reconciler = None

# -----------------------------------------------------------------------------
# FastAPI app + CORS
# -----------------------------------------------------------------------------
app = FastAPI(title=settings.APP_NAME, version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------------------------------------------------------
# Models
# -----------------------------------------------------------------------------
class ExpectationsResponse(BaseModel):
    controller: str
    pending: Dict[str, List[str]] = Field(default_factory=dict, description="Pending object names per action")

class ReconcileResponse(BaseModel):
    controller: str
    changed: bool
    skipped: bool = False
    reason: Optional[str] = None
    error: Optional[str] = None

# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "healthy"}

@app.get("/api/health")
async def api_health():
    return {
        "status": "healthy",
        "env": settings.APP_ENV,
        "reconciler": "ready" if reconciler is not None else "disabled",
    }

@app.get("/api/expectations/{namespace}/{name}", response_model=ExpectationsResponse)
def api_expectations(namespace: str, name: str) -> ExpectationsResponse:
    """Pending create/delete expectations of a CloneSet."""
    controller_key = f"{namespace}/{name}"
    pending = scale_expectations.get_expectations(controller_key)
    return ExpectationsResponse(
        controller=controller_key,
        pending={action.value: sorted(names) for action, names in pending.items()},
    )

@app.post("/api/clonesets/{namespace}/{name}/reconcile", response_model=ReconcileResponse)
def api_reconcile(namespace: str, name: str) -> ReconcileResponse:
    """Run one scaling pass for a CloneSet."""
    if reconciler is None:
        raise HTTPException(503, "Kubernetes client not available")

    controller_key = f"{namespace}/{name}"
    try:
        result = reconciler.reconcile(namespace, name)
    except ApiException as e:
        if e.status == 404:
            raise HTTPException(404, f"CloneSet {controller_key} not found")
        logger.error(f"❌ Error reconciling {controller_key}: {e}")
        raise HTTPException(500, f"Reconcile failed: {e}")

    if result.changed:
        logger.info(f"✅ Reconciled {controller_key} with changes")
    return ReconcileResponse(
        controller=controller_key,
        changed=result.changed,
        skipped=result.skipped,
        reason=result.reason,
        error=result.error,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.HTTP_PORT)
