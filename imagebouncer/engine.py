"""
Admission decision engine: evaluates a pod's images against the image policy.
"""

import asyncio
import logging
from typing import Iterable, Optional

from imagebouncer.config import PolicyConfig
from imagebouncer.metrics import MetricsCollector
from imagebouncer.models import Container, PodSpec
from imagebouncer.notifier import NotificationEvent, Notifier, NullNotifier
from imagebouncer.validators.base import Verdict
from imagebouncer.validators.namespace import is_namespace_exempt
from imagebouncer.validators.reference import parse_image_reference
from imagebouncer.validators.registry import is_from_whitelisted_registry


logger = logging.getLogger(__name__)

RULE_LATEST_TAG = "latest-tag"
RULE_REGISTRY = "registry"


def _check_containers(
    containers: Iterable[Container], label: str, policy: PolicyConfig
) -> Optional[Verdict]:
    """Return a denial for the first violating container, or None."""
    for container in containers:
        reference = parse_image_reference(container.image)

        if reference.uses_latest_tag:
            return Verdict.deny(
                f"{label} image using latest tag is not allowed: {container.image}",
                container.image,
                RULE_LATEST_TAG,
            )

        if policy.registry_restricted and not is_from_whitelisted_registry(
            reference, policy.whitelisted_registries
        ):
            return Verdict.deny(
                f"{label} image from a non-whitelisted registry: {container.image}",
                container.image,
                RULE_REGISTRY,
            )

    return None


def evaluate(pod: PodSpec, policy: PolicyConfig) -> Verdict:
    """
    Decide whether a pod may be admitted.

    Init containers are checked before containers, each in order, and the
    first violation is the only one reported.

    Raises:
        InputError: if an image reference cannot be parsed
    """
    if is_namespace_exempt(pod.namespace, policy.whitelisted_namespaces):
        return Verdict.exemption()

    verdict = _check_containers(pod.init_containers, "InitContainer", policy)
    if verdict is None:
        verdict = _check_containers(pod.containers, "Container", policy)

    return verdict or Verdict.allow()


class DecisionEngine:
    """Runs the image policy and reports rejections through a notifier."""

    def __init__(
        self,
        policy: PolicyConfig,
        notifier: Optional[Notifier] = None,
        notify_timeout: float = 8.0,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.policy = policy
        self.notifier = notifier or NullNotifier()
        self.notify_timeout = notify_timeout
        self.metrics = metrics or MetricsCollector()

    async def decide(self, pod: PodSpec) -> Verdict:
        """Evaluate a pod and send one notification if it is rejected."""
        verdict = evaluate(pod, self.policy)
        if verdict.exempt:
            self.metrics.record_exempt()
        elif not verdict.allowed:
            logger.info("Rejected pod %s/%s: %s", pod.namespace, pod.name, verdict.reason)
            await self._notify(
                NotificationEvent(
                    pod_name=pod.name,
                    namespace=pod.namespace,
                    violating_image=verdict.violating_image,
                    reason=verdict.reason,
                    images=pod.images,
                    init_images=pod.init_images,
                )
            )
        return verdict

    async def _notify(self, event: NotificationEvent) -> None:
        # Delivery problems are recorded only; the verdict is already final
        try:
            await asyncio.wait_for(self.notifier.notify(event), timeout=self.notify_timeout)
            self.metrics.record_notification("sent")
        except asyncio.TimeoutError:
            logger.error(
                "Notification for pod %s abandoned after %.1fs", event.pod_name, self.notify_timeout
            )
            self.metrics.record_notification("timeout")
        except Exception as e:
            logger.error("Failed to send notification for pod %s: %s", event.pod_name, e)
            self.metrics.record_notification("failed")
