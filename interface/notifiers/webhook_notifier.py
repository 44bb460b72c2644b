"""
Webhook delivery of trigger notifications.

Config:
    webhook_url: endpoint (required)
    type: "generic" (default), "slack" or "discord"
    timeout: seconds, default 10
"""
from typing import Any, Callable, Dict, Optional

import httpx

from core.logger import get_logger
from interface.notifiers.base import BaseNotifier, Notification

logger = get_logger("webhook_notifier")

# Discord embed 颜色
_DISCORD_COLORS = {"red": 0xE53935, "blue": 0x1E88E5}


def _generic_payload(notification: Notification) -> Dict[str, Any]:
    return {
        "title": notification.title,
        "message": notification.message,
        "priority": notification.priority.value,
        "priority_rank": notification.priority_rank,
        "color": notification.color,
        "timestamp": notification.created_at,
        "data": notification.data or {},
    }


def _slack_payload(notification: Notification) -> Dict[str, Any]:
    marker = ":no_entry:" if notification.is_restriction else ":bell:"
    return {"text": f"{marker} *{notification.title}* ({notification.message})"}


def _discord_payload(notification: Notification) -> Dict[str, Any]:
    return {
        "embeds": [{
            "title": notification.title,
            "description": notification.message,
            "color": _DISCORD_COLORS[notification.color],
        }]
    }


PAYLOAD_BUILDERS: Dict[str, Callable[[Notification], Dict[str, Any]]] = {
    "generic": _generic_payload,
    "slack": _slack_payload,
    "discord": _discord_payload,
}


class WebhookNotifier(BaseNotifier):

    def __init__(self, config: Optional[Dict[str, Any]] = None, client: Optional[httpx.Client] = None):
        super().__init__(config)
        self.webhook_url = self.config.get("webhook_url", "")
        self.webhook_type = self.config.get("type", "generic")
        if self.webhook_type not in PAYLOAD_BUILDERS:
            raise ValueError(f"Unknown webhook type: {self.webhook_type}")
        self.timeout = float(self.config.get("timeout", 10.0))
        self._client = client

    def send(self, notification: Notification) -> bool:
        if not self.is_available():
            return False

        payload = PAYLOAD_BUILDERS[self.webhook_type](notification)
        try:
            response = self._post(payload)
        except httpx.HTTPError as e:
            logger.warning("Webhook delivery to %s failed: %s", self.webhook_url, e)
            return False

        if response.is_error:
            logger.warning("Webhook %s answered %d", self.webhook_url, response.status_code)
            return False
        return True

    def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return self._client.post(self.webhook_url, json=payload)
        with httpx.Client(timeout=self.timeout) as client:
            return client.post(self.webhook_url, json=payload)

    def get_name(self) -> str:
        return "webhook"

    def is_available(self) -> bool:
        return bool(self.enabled and self.webhook_url)
