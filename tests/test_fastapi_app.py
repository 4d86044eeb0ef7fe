"""Unit tests for the HTTP surface."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from kubernetes.client.rest import ApiException

import fastapi_app
from expectations import ScaleAction
from reconciler import ReconcileResult

pytestmark = [pytest.mark.unit]


@pytest.fixture
def http():
    return TestClient(fastapi_app.app)


@pytest.fixture
def mock_reconciler(monkeypatch):
    reconciler = MagicMock()
    monkeypatch.setattr(fastapi_app, "reconciler", reconciler)
    return reconciler


def test_health(http):
    assert http.get("/health").json() == {"status": "healthy"}


def test_app_uses_configured_identity(http, monkeypatch):
    """Test the app name and environment come from settings."""
    monkeypatch.setattr(fastapi_app, "reconciler", None)
    body = http.get("/api/health").json()

    assert fastapi_app.app.title == fastapi_app.settings.APP_NAME
    assert body["env"] == fastapi_app.settings.APP_ENV
    assert body["reconciler"] == "disabled"


def test_expectations_endpoint(http):
    """Test pending expectations are listed per action."""
    fastapi_app.scale_expectations.expect_scale("ns1/web", ScaleAction.CREATE, "web-bbbbb")
    fastapi_app.scale_expectations.expect_scale("ns1/web", ScaleAction.CREATE, "web-aaaaa")
    try:
        response = http.get("/api/expectations/ns1/web")
    finally:
        fastapi_app.scale_expectations.delete_expectations("ns1/web")

    assert response.status_code == 200
    assert response.json() == {"controller": "ns1/web", "pending": {"create": ["web-aaaaa", "web-bbbbb"]}}


def test_reconcile_endpoint(http, mock_reconciler):
    """Test a reconcile result is returned to the caller."""
    mock_reconciler.reconcile.return_value = ReconcileResult(changed=True)

    response = http.post("/api/clonesets/ns1/web/reconcile")

    assert response.status_code == 200
    assert response.json()["changed"] is True
    mock_reconciler.reconcile.assert_called_once_with("ns1", "web")


def test_reconcile_missing_cloneset(http, mock_reconciler):
    mock_reconciler.reconcile.side_effect = ApiException(status=404, reason="Not Found")

    assert http.post("/api/clonesets/ns1/nope/reconcile").status_code == 404


def test_reconcile_api_failure(http, mock_reconciler):
    mock_reconciler.reconcile.side_effect = ApiException(status=500, reason="boom")

    assert http.post("/api/clonesets/ns1/web/reconcile").status_code == 500


def test_reconcile_without_cluster(http, monkeypatch):
    """Test reconcile is unavailable when no cluster client could be built."""
    monkeypatch.setattr(fastapi_app, "reconciler", None)

    assert http.post("/api/clonesets/ns1/web/reconcile").status_code == 503
