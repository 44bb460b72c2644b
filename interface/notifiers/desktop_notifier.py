"""
Desktop Notifier for Discipline Coach.

Sends system notifications through plyer's cross-platform backend.
"""
from plyer import notification as plyer_notification

from core.logger import get_logger
from interface.notifiers.base import BaseNotifier, Notification, NotificationPriority

logger = get_logger("desktop_notifier")

APP_NAME = "Discipline Coach"


class DesktopNotifier(BaseNotifier):
    """Send notifications via system desktop notifications."""

    def send(self, notification: Notification) -> bool:
        """Send a desktop notification."""
        if not self.enabled:
            return False

        # 根据优先级设置显示时长
        timeout = {
            NotificationPriority.LOW: 3,
            NotificationPriority.NORMAL: 5,
            NotificationPriority.URGENT: 10,
        }.get(notification.priority, 5)

        try:
            plyer_notification.notify(
                title=_decorated_title(notification),
                message=notification.message,
                app_name=self.config.get("app_name", APP_NAME),
                timeout=timeout,
            )
            return True
        except Exception as e:
            logger.warning("Desktop notification failed: %s", e)
            return False

    def get_name(self) -> str:
        return "desktop"


def _decorated_title(notification: Notification) -> str:
    # 禁止类提醒加醒目前缀（桌面通知无法设置颜色）
    if notification.is_restriction:
        return f"\u26d4 {notification.title}"
    return notification.title
