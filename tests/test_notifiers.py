import json
from datetime import time

import httpx
import pytest

from core.alert_policy import AlertTier
from core.models import Event, EventKind
from interface.notifiers import desktop_notifier
from interface.notifiers.base import Notification, NotificationPriority
from interface.notifiers.desktop_notifier import DesktopNotifier
from interface.notifiers.webhook_notifier import WebhookNotifier


def _notification(**overrides) -> Notification:
    fields = dict(
        title="No more caffeine",
        message="07:45",
        priority=NotificationPriority.for_tier(AlertTier.CRITICAL),
        priority_rank=1,
        is_restriction=True,
    )
    fields.update(overrides)
    return Notification(**fields)


def _client(captured, status_code=200) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(json.loads(request.content))
        return httpx.Response(status_code)

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_priority_for_tier():
    assert NotificationPriority.for_tier(AlertTier.CRITICAL) is NotificationPriority.URGENT
    assert NotificationPriority.for_tier(AlertTier.TRANSITION) is NotificationPriority.NORMAL
    assert NotificationPriority.for_tier(AlertTier.REFERENCE) is NotificationPriority.LOW


def test_generic_webhook_payload():
    captured = []
    notifier = WebhookNotifier({"webhook_url": "https://hooks.test/coach"}, client=_client(captured))

    assert notifier.send(_notification(data={"kind": "NO_COFFEE"}))

    payload = captured[0]
    assert payload["title"] == "No more caffeine"
    assert payload["priority"] == "urgent"
    assert payload["priority_rank"] == 1
    assert payload["color"] == "red"
    assert payload["data"] == {"kind": "NO_COFFEE"}


def test_slack_and_discord_payloads():
    captured = []
    slack = WebhookNotifier({"webhook_url": "https://hooks.test/s", "type": "slack"}, client=_client(captured))
    discord = WebhookNotifier({"webhook_url": "https://hooks.test/d", "type": "discord"}, client=_client(captured))

    slack.send(_notification())
    discord.send(_notification())

    assert captured[0] == {"text": ":no_entry: *No more caffeine* (07:45)"}
    embed = captured[1]["embeds"][0]
    assert embed["title"] == "No more caffeine"
    assert embed["description"] == "07:45"
    assert embed["color"] == 0xE53935


def test_webhook_failures_return_false():
    notifier = WebhookNotifier({"webhook_url": "https://hooks.test/coach"}, client=_client([], status_code=500))
    assert not notifier.send(_notification())

    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    offline = WebhookNotifier(
        {"webhook_url": "https://hooks.test/coach"},
        client=httpx.Client(transport=httpx.MockTransport(refuse)),
    )
    assert not offline.send(_notification())


def test_webhook_without_url_is_unavailable():
    notifier = WebhookNotifier({})
    assert not notifier.is_available()
    assert not notifier.send(_notification())


class _FakePlyer:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def notify(self, **kwargs):
        if self.fail:
            raise NotImplementedError("no backend")
        self.calls.append(kwargs)


def test_desktop_notifier_uses_priority_timeout(monkeypatch):
    fake = _FakePlyer()
    monkeypatch.setattr(desktop_notifier, "plyer_notification", fake)

    assert DesktopNotifier().send(_notification())
    assert fake.calls[0]["timeout"] == 10
    assert fake.calls[0]["app_name"] == "Discipline Coach"
    assert fake.calls[0]["title"] == "\u26d4 No more caffeine"


def test_desktop_notifier_backend_failure(monkeypatch):
    monkeypatch.setattr(desktop_notifier, "plyer_notification", _FakePlyer(fail=True))
    assert not DesktopNotifier().send(_notification())
    assert not DesktopNotifier({"enabled": False}).send(_notification())


def test_notification_for_event():
    event = Event(time(9, 0), EventKind.STUDY_START, AlertTier.TRANSITION, "Focus", 90)
    notification = Notification.for_event(event)

    assert notification.title == "Focus"
    assert notification.message == "09:00"
    assert notification.priority is NotificationPriority.NORMAL
    assert notification.priority_rank == 2
    assert notification.color == "blue"
    assert notification.data == {"kind": "STUDY_START", "tier": "TRANSITION"}


def test_unknown_webhook_type_is_rejected():
    with pytest.raises(ValueError):
        WebhookNotifier({"webhook_url": "https://hooks.test/x", "type": "teams"})
