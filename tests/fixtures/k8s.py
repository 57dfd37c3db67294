# tests/fixtures/k8s.py
"""
Shared test fixtures for image bouncer tests
"""

import asyncio
from typing import List, Optional

import pytest

from imagebouncer.config import AdmissionConfig, PolicyConfig
from imagebouncer.notifier import NotificationEvent, Notifier
from imagebouncer.services.admission_controller import AdmissionController, AdmissionWebhookServer


class RecordingNotifier(Notifier):
    """Notifier that keeps every event instead of sending it."""

    def __init__(self, error: Optional[Exception] = None, delay: float = 0):
        self.events: List[NotificationEvent] = []
        self.error = error
        self.delay = delay

    async def notify(self, event: NotificationEvent) -> None:
        self.events.append(event)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error


def build_pod(
    images: List[str],
    init_images: Optional[List[str]] = None,
    name: str = "test-pod",
    namespace: str = "default",
) -> dict:
    """Build a raw pod object."""
    spec = {
        "containers": [
            {"name": f"app-{i}", "image": image} for i, image in enumerate(images)
        ]
    }
    if init_images:
        spec["initContainers"] = [
            {"name": f"init-{i}", "image": image} for i, image in enumerate(init_images)
        ]
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": name, "namespace": namespace},
        "spec": spec,
    }


def build_review(
    images: List[str],
    init_images: Optional[List[str]] = None,
    namespace: str = "default",
    uid: str = "test-uid-123",
    kind: str = "Pod",
    operation: str = "CREATE",
    api_version: str = "admission.k8s.io/v1",
) -> dict:
    """Build an AdmissionReview request for a pod."""
    return {
        "apiVersion": api_version,
        "kind": "AdmissionReview",
        "request": {
            "uid": uid,
            "operation": operation,
            "namespace": namespace,
            "name": "test-pod",
            "kind": {"kind": kind, "version": "v1", "group": ""},
            "resource": {"group": "", "version": "v1", "resource": "pods"},
            "object": build_pod(images, init_images, namespace=namespace),
        },
    }


@pytest.fixture
def policy():
    """Policy with one exempt namespace and no registry restriction."""
    return PolicyConfig(whitelisted_namespaces=["kube-system"])


@pytest.fixture
def restricted_policy():
    """Policy that only allows myregistry.io."""
    return PolicyConfig(
        whitelisted_namespaces=["kube-system"],
        whitelisted_registries=["myregistry.io"],
    )


@pytest.fixture
def test_config():
    """Create test configuration using Pydantic."""
    return AdmissionConfig(
        bind_address="127.0.0.1",
        port=8443,
        namespace_whitelist_str="kube-system,monitoring",
        registry_whitelist_str="",
        require_tls=False,
        debug=True,
        metrics_enabled=True,
    )


@pytest.fixture
def restricted_config():
    return AdmissionConfig(
        namespace_whitelist_str="kube-system",
        registry_whitelist_str="myregistry.io, quay.io",
        require_tls=False,
    )


@pytest.fixture
def recording_notifier():
    return RecordingNotifier()


@pytest.fixture
def admission_controller(test_config, recording_notifier):
    """Create admission controller instance for testing."""
    return AdmissionController(test_config, notifier=recording_notifier)


@pytest.fixture
def webhook_server(test_config, recording_notifier):
    """Create webhook server instance for testing."""
    return AdmissionWebhookServer(test_config, notifier=recording_notifier)


@pytest.fixture
def valid_admission_review():
    """Pod with a pinned tag."""
    return build_review(["docker.io/library/nginx:1.25"])


@pytest.fixture
def latest_tag_review():
    """Pod using an implicit latest tag."""
    return build_review(["nginx"], uid="test-uid-latest")


@pytest.fixture
def exempt_namespace_review():
    """Pod in a whitelisted namespace with unparseable images."""
    return build_review(["nginx", ""], namespace="kube-system", uid="test-uid-exempt")


@pytest.fixture
def deployment_review():
    """Create admission review for deployment."""
    review = build_review(["nginx:1.25"], kind="Deployment", uid="test-uid-deployment")
    review["request"]["kind"]["group"] = "apps"
    return review
