"""
TriggerBus: fan-out of trigger records to any number of consumers.

Consumers either register a callback (called synchronously on the polling
thread) or open a channel, a queue.Queue they drain on their own thread.
Failing callbacks and full channels are logged and never reach the engine.
"""
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Tuple

from core.logger import get_logger
from core.models import Event

logger = get_logger("trigger_bus")


@dataclass(frozen=True)
class TriggerRecord:
    """One event firing."""
    event: Event
    fired_at: datetime
    schedule_name: str
    actions: Tuple[str, ...] = field(default_factory=tuple)  # "notify" / "audio" / "wake"


TriggerCallback = Callable[[TriggerRecord], None]


class TriggerBus:

    def __init__(self):
        self._lock = threading.Lock()
        self._callbacks: List[TriggerCallback] = []
        self._channels: List[queue.Queue] = []

    def subscribe(self, callback: TriggerCallback) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        with self._lock:
            self._callbacks.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def open_channel(self, maxsize: int = 0) -> queue.Queue:
        channel: queue.Queue = queue.Queue(maxsize=maxsize)
        with self._lock:
            self._channels.append(channel)
        return channel

    def close_channel(self, channel: queue.Queue) -> None:
        with self._lock:
            if channel in self._channels:
                self._channels.remove(channel)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._callbacks) + len(self._channels)

    def publish(self, record: TriggerRecord) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
            channels = list(self._channels)

        for callback in callbacks:
            try:
                callback(record)
            except Exception:
                logger.exception("Trigger subscriber %r failed", callback)

        for channel in channels:
            try:
                channel.put_nowait(record)
            except queue.Full:
                logger.warning("Trigger channel full, dropped %s", record.event)
