from datetime import datetime, time

from core.alert_policy import AlertTier
from core.models import Event, EventKind
from scheduler.trigger_bus import TriggerBus, TriggerRecord


def _record() -> TriggerRecord:
    event = Event(time(8, 0), EventKind.MEAL_TIME, AlertTier.TRANSITION)
    return TriggerRecord(event=event, fired_at=datetime(2026, 3, 2, 8, 0), schedule_name="Rest@Home")


def test_subscribe_and_unsubscribe():
    bus = TriggerBus()
    received = []
    unsubscribe = bus.subscribe(received.append)
    assert bus.subscriber_count == 1

    bus.publish(_record())
    unsubscribe()
    unsubscribe()
    bus.publish(_record())

    assert len(received) == 1
    assert bus.subscriber_count == 0


def test_failing_subscriber_does_not_stop_delivery():
    bus = TriggerBus()
    received = []

    def broken(record):
        raise ValueError("boom")

    bus.subscribe(broken)
    bus.subscribe(received.append)
    bus.publish(_record())

    assert len(received) == 1


def test_full_channel_drops_records():
    bus = TriggerBus()
    channel = bus.open_channel(maxsize=1)
    bus.publish(_record())
    bus.publish(_record())

    assert channel.qsize() == 1
    bus.close_channel(channel)
    bus.publish(_record())
    assert channel.qsize() == 1
