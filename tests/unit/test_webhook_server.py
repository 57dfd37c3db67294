# tests/unit/test_webhook_server.py
"""
Unit tests for Admission Webhook Server
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from fixtures.k8s import build_review


@pytest.fixture
def client(webhook_server):
    with TestClient(webhook_server.app) as client:
        yield client


def test_ping_endpoint(client):
    resp = client.get("/ping")

    assert resp.status_code == 200
    assert resp.text == "ok"


def test_health_endpoint(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["healthy"] is True


def test_health_endpoint_unhealthy(client, webhook_server):
    with patch.object(webhook_server.controller, "health_check") as mock_health:
        mock_health.return_value = {"healthy": False}

        resp = client.get("/health")

    assert resp.status_code == 503


def test_metrics_endpoint(client):
    client.post("/validate", json=build_review(["nginx"]))

    resp = client.get("/metrics")

    assert resp.status_code == 200
    assert "image_bouncer_info" in resp.text
    assert 'image_bouncer_admissions_total{decision="denied"} 1' in resp.text
    assert 'image_bouncer_rejections_total{rule="latest-tag"} 1' in resp.text


def test_validate_endpoint_success(client):
    resp = client.post("/validate", json=build_review(["nginx:1.25"], uid="test-123"))

    assert resp.status_code == 200
    data = resp.json()
    assert data["kind"] == "AdmissionReview"
    assert data["response"]["allowed"] is True
    assert data["response"]["uid"] == "test-123"


def test_validate_endpoint_denial(client, recording_notifier):
    resp = client.post("/validate", json=build_review(["nginx"], uid="test-456"))

    assert resp.status_code == 200
    data = resp.json()
    assert data["response"]["allowed"] is False
    assert data["response"]["status"]["message"] == (
        "Container image using latest tag is not allowed: nginx"
    )
    assert len(recording_notifier.events) == 1


def test_validate_endpoint_bad_image(client, recording_notifier):
    resp = client.post("/validate", json=build_review(["nginx:1.25", ""]))

    assert resp.status_code == 200
    data = resp.json()
    assert data["response"]["allowed"] is False
    assert data["response"]["status"]["code"] == 400
    assert recording_notifier.events == []


def test_validate_endpoint_invalid_json(client):
    resp = client.post(
        "/validate", content="invalid json", headers={"Content-Type": "application/json"}
    )

    assert resp.status_code == 400
    assert "Invalid JSON" in resp.json()["error"]


def test_validate_endpoint_invalid_utf8(client):
    resp = client.post(
        "/validate", content=b'{"request": "\xff\xfe"}', headers={"Content-Type": "application/json"}
    )

    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid JSON"}


def test_validate_endpoint_trailing_newline_image(client, recording_notifier):
    resp = client.post("/validate", json=build_review(["nginx:1.25\n"]))

    assert resp.status_code == 200
    data = resp.json()
    assert data["response"]["allowed"] is False
    assert data["response"]["status"]["code"] == 400
    assert recording_notifier.events == []


def test_validate_endpoint_wrong_content_type(client):
    resp = client.post("/validate", content="<xml/>", headers={"Content-Type": "application/xml"})

    assert resp.status_code == 415


def test_validate_endpoint_missing_request(client):
    resp = client.post(
        "/validate", json={"apiVersion": "admission.k8s.io/v1", "kind": "AdmissionReview"}
    )

    assert resp.status_code == 400
    assert "missing request" in resp.json()["error"]


def test_validate_endpoint_exception_handling(client, webhook_server):
    """Unexpected errors still produce a deny response."""
    with patch.object(webhook_server.controller, "validate_admission") as mock_validate:
        mock_validate.side_effect = Exception("Unexpected error")

        resp = client.post("/validate", json=build_review(["nginx:1.25"], uid="test-error"))

    assert resp.status_code == 200
    data = resp.json()
    assert data["response"]["allowed"] is False
    assert data["response"]["uid"] == "test-error"
    assert "Internal server error" in data["response"]["status"]["message"]
