"""
Rejection notifications.

The decision engine only depends on the ``Notifier`` interface; the Slack
incoming-webhook implementation is selected when a webhook URL is configured.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import aiohttp

from imagebouncer.config import AdmissionConfig


logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "Image Bouncer event - Pod rejection"
NOTIFICATION_COLOR = "#F35A00"
NOTIFICATION_FOOTER = "image-bouncer"


class NotifyError(Exception):
    """Raised when a notification could not be delivered."""


@dataclass(frozen=True)
class NotificationEvent:
    """A rejected pod, described for whoever gets alerted."""

    pod_name: str
    namespace: str
    violating_image: str
    reason: str
    images: List[str] = field(default_factory=list)
    init_images: List[str] = field(default_factory=list)


class Notifier(ABC):
    """Capability used by the decision engine to report rejections."""

    @abstractmethod
    async def notify(self, event: NotificationEvent) -> None:
        """
        Deliver a rejection notification.

        Raises:
            NotifyError: if delivery failed
        """
        pass


class NullNotifier(Notifier):
    """Notifier used when no webhook URL is configured."""

    async def notify(self, event: NotificationEvent) -> None:
        logger.debug("Notifier webhook URL is not provided, skipping alert for pod %s", event.pod_name)


class SlackNotifier(Notifier):
    """Posts rejection alerts to a Slack incoming webhook."""

    def __init__(self, webhook_url: str, timeout: float = 5.0):
        self.webhook_url = webhook_url
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def build_message(self, event: NotificationEvent) -> Dict:
        """Build the Slack attachment payload for a rejected pod."""
        short = len(event.images) < 2 and len(event.init_images) < 2
        fields = [
            {"title": "namespace", "value": event.namespace, "short": short},
            {"title": "pod", "value": event.pod_name, "short": short},
            {"title": "image", "value": ", ".join(event.images), "short": short},
            {"title": "initImage", "value": ", ".join(event.init_images), "short": short},
            {"title": "violatingImage", "value": event.violating_image, "short": short},
        ]
        # Slack rejects fields with empty values
        fields = [f for f in fields if f["value"]]

        return {
            "text": "",
            "attachments": [
                {
                    "title": NOTIFICATION_TITLE,
                    "text": f"pod {event.pod_name} has been rejected by image bouncer: {event.reason}",
                    "fallback": event.reason,
                    "footer": NOTIFICATION_FOOTER,
                    "color": NOTIFICATION_COLOR,
                    "fields": fields,
                }
            ],
        }

    async def notify(self, event: NotificationEvent) -> None:
        message = self.build_message(event)
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.webhook_url, json=message) as response:
                    if response.status != 200:
                        raise NotifyError(
                            f"unexpected status code {response.status} from slack webhook"
                        )
        except aiohttp.ClientError as e:
            raise NotifyError(f"slack webhook request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise NotifyError(
                f"slack webhook did not answer within {self.timeout.total}s"
            ) from e

        logger.debug("Sent rejection notification for pod %s", event.pod_name)


def build_notifier(config: AdmissionConfig) -> Notifier:
    """Pick the notifier implementation for the configuration."""
    if config.notifier_url:
        logger.info("Rejection notifications enabled")
        return SlackNotifier(config.notifier_url, timeout=config.notifier_timeout)
    logger.info("No notifier webhook URL configured, rejection notifications disabled")
    return NullNotifier()
