"""
Notification adapters.

``WebhookNotifier`` posts booking messages to an HTTP endpoint (for example
a push or e-mail gateway). ``LoggingNotifier`` only records them.
"""

import logging
from typing import List, Tuple

import pendulum
import requests

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Writes notifications to the log and keeps them for inspection."""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []

    def notify(self, user_id: str, message: str) -> None:
        self.sent.append((user_id, message))
        logger.info("Notify %s: %s", user_id, message)


class WebhookNotifier:
    """
    Delivers notifications as JSON POST requests.

    Payload format:
    {
        "userId": "customer-1",
        "message": "...",
        "sentAt": "2024-11-25T09:00:00+00:00"
    }
    """

    def __init__(self, webhook_url: str, timeout_seconds: float = 5.0, session=None):
        """
        Initialize the notifier.

        Args:
            webhook_url: Endpoint receiving the notifications
            timeout_seconds: Per-request timeout
            session: Optional ``requests.Session`` (connection reuse, testing)
        """
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.headers = {"Content-Type": "application/json"}

    def notify(self, user_id: str, message: str) -> None:
        """
        Send one notification.

        Raises:
            RuntimeError: If the endpoint cannot be reached or rejects the call
        """
        payload = {
            "userId": user_id,
            "message": message,
            "sentAt": pendulum.now("UTC").to_iso8601_string(),
        }

        try:
            response = self.session.post(
                self.webhook_url,
                headers=self.headers,
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise RuntimeError(f"Failed to deliver notification to {user_id}: {e}") from e

        logger.debug("Notification delivered to %s", user_id)
