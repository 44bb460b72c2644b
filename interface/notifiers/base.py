"""
Notifier seam for Discipline Coach.

The trigger engine turns each fired event into a Notification and hands it
to every available BaseNotifier.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from core.alert_policy import AlertTier
from core.models import Event


class NotificationPriority(Enum):
    LOW = "low"
    NORMAL = "normal"
    URGENT = "urgent"

    @classmethod
    def for_tier(cls, tier: AlertTier) -> "NotificationPriority":
        return _TIER_PRIORITY[tier]


_TIER_PRIORITY = {
    AlertTier.CRITICAL: NotificationPriority.URGENT,
    AlertTier.TRANSITION: NotificationPriority.NORMAL,
    AlertTier.REFERENCE: NotificationPriority.LOW,
}


@dataclass
class Notification:
    """One user-facing alert: title is the event message, body its HH:MM time."""
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    priority_rank: int = 2
    is_restriction: bool = False  # 禁止类提醒以红色呈现
    created_at: str = field(default_factory=lambda: datetime.now().isoformat(timespec="seconds"))
    data: Optional[Dict[str, Any]] = None

    @classmethod
    def for_event(cls, event: Event) -> "Notification":
        return cls(
            title=event.display_message(),
            message=event.time_string(),
            priority=NotificationPriority.for_tier(event.tier),
            priority_rank=event.tier.priority,
            is_restriction=event.kind.is_restriction,
            data={"kind": event.kind.name, "tier": event.tier.name},
        )

    @property
    def color(self) -> str:
        return "red" if self.is_restriction else "blue"


class BaseNotifier(ABC):
    """
    Delivery channel for notifications.

    Config keys common to all notifiers: enabled (default True).
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.enabled = bool(self.config.get("enabled", True))

    @abstractmethod
    def send(self, notification: Notification) -> bool:
        """Deliver one notification; False when it was not delivered."""
        pass

    @abstractmethod
    def get_name(self) -> str:
        pass

    def is_available(self) -> bool:
        return self.enabled
