"""
TriggerEngine: exactly-once, per-day firing of schedule events.

State machine:
    IDLE --start--> RUNNING --pause--> PAUSED --resume--> RUNNING
    any  --stop-->  STOPPED (terminal, idempotent)

Each poll looks at the wall-clock window (last_check, now], compared by
minute, and fires every event inside it that has not fired yet. Fired keys
(time, kind) are forgotten once the event is more than an hour old, so the
same event fires again the next day.

因果链:
    触发条件: 事件分钟落在 (last_check, now] 内
    成立条件: 该事件键今日未触发
    失效条件: 事件已超过保留时长，记录被清理
"""
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from core.alert_policy import AlertTier
from core.config_manager import SystemConfig, config as default_config
from core.exceptions import EngineStateError
from core.logger import get_logger
from core.models import MINUTES_PER_DAY, Event, EventKind, minute_of_day
from core.preferences import AudioPreferences
from core.schedule import Schedule
from interface.audio_player import BaseAudioPlayer
from interface.notifiers.base import BaseNotifier, Notification
from interface.wake_lock import BaseWakeController
from scheduler.trigger_bus import TriggerBus, TriggerRecord

logger = get_logger("trigger_engine")

EventKey = Tuple[object, EventKind]


class EngineState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class TriggerEngine:
    """
    Single-session trigger engine. All state mutation is serialized by one
    re-entrant lock, so a background poller and foreground callers can share
    an instance.
    """

    def __init__(
        self,
        bus: Optional[TriggerBus] = None,
        notifiers: Optional[Sequence[BaseNotifier]] = None,
        audio_player: Optional[BaseAudioPlayer] = None,
        wake_controller: Optional[BaseWakeController] = None,
        preferences: Optional[AudioPreferences] = None,
        system_config: Optional[SystemConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.bus = bus or TriggerBus()
        self.notifiers: List[BaseNotifier] = list(notifiers or [])
        self.audio_player = audio_player
        self.wake_controller = wake_controller
        self.preferences = preferences or AudioPreferences()
        self.config = system_config or default_config
        self._clock = clock

        self._lock = threading.RLock()
        self._state = EngineState.IDLE
        self._schedule: Optional[Schedule] = None
        self._last_check: Optional[datetime] = None
        self._triggered: Dict[EventKey, bool] = {}

    # --- read-only views ---

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def schedule(self) -> Optional[Schedule]:
        return self._schedule

    @property
    def last_check_time(self) -> Optional[datetime]:
        return self._last_check

    @property
    def triggered_keys(self) -> List[EventKey]:
        with self._lock:
            return [key for key, fired in self._triggered.items() if fired]

    def is_triggered(self, event: Event) -> bool:
        with self._lock:
            return self._triggered.get(event.key, False)

    # --- transitions ---

    def start(self, schedule: Schedule, now: Optional[datetime] = None, catch_up: bool = False) -> None:
        """
        IDLE -> RUNNING.

        Args:
            schedule: the schedule to watch
            now: start time, defaults to the clock
            catch_up: leave the check window open so the first poll fires
                events from the last FIRST_POLL_CATCHUP_MINUTES
        """
        with self._lock:
            if self._state is not EngineState.IDLE:
                raise EngineStateError(f"Cannot start engine in state {self._state.value}", self._state.value)
            self._schedule = schedule
            self._last_check = None if catch_up else (now or self._clock())
            self._state = EngineState.RUNNING
            self._safely("acquire session wake", self._acquire_session_wake)
        logger.info("Engine started for %r", schedule)

    def pause(self) -> None:
        """RUNNING -> PAUSED. Stops in-flight audio; fired keys are kept."""
        with self._lock:
            if self._state is not EngineState.RUNNING:
                raise EngineStateError(f"Cannot pause engine in state {self._state.value}", self._state.value)
            self._state = EngineState.PAUSED
            self._safely("stop audio", self._stop_audio)
        logger.info("Engine paused")

    def resume(self) -> None:
        """
        PAUSED -> RUNNING.

        The check window keeps its pre-pause start, so the next poll fires
        events whose minute passed while paused. Already-fired keys are
        still held and do not fire again.
        """
        with self._lock:
            if self._state is not EngineState.PAUSED:
                raise EngineStateError(f"Cannot resume engine in state {self._state.value}", self._state.value)
            self._state = EngineState.RUNNING
        logger.info("Engine resumed")

    def stop(self) -> None:
        """Any state -> STOPPED. Releases wake holds and audio; idempotent."""
        with self._lock:
            if self._state is EngineState.STOPPED:
                return
            self._state = EngineState.STOPPED
            self._safely("stop audio", self._stop_audio)
            self._safely("release wake", self._release_wake)
        logger.info("Engine stopped")

    # --- polling ---

    def poll(self, now: Optional[datetime] = None) -> List[TriggerRecord]:
        """
        Run one check. Returns the records fired by this poll (possibly none).
        Does nothing unless RUNNING.
        """
        with self._lock:
            if self._state is not EngineState.RUNNING:
                return []

            now = now or self._clock()
            fired: List[TriggerRecord] = []

            for event in self._schedule.events:
                if self._state is not EngineState.RUNNING:
                    # a subscriber paused or stopped us mid-poll
                    break
                if self._triggered.get(event.key, False):
                    continue
                if not self._is_due(event, now):
                    continue
                fired.append(self._fire(event, now))
                self._triggered[event.key] = True

            self._evict(now)
            self._last_check = now
            return fired

    def _is_due(self, event: Event, now: datetime) -> bool:
        if self._last_check is None:
            # 首次检查：只补发最近一分钟内的事件
            until = event.minutes_until(now)
            return -self.config.FIRST_POLL_CATCHUP_MINUTES <= until <= 0

        start = minute_of_day(self._last_check)
        end = minute_of_day(now)
        at = minute_of_day(event.time)
        if start <= end:
            return start < at <= end
        # window crosses midnight
        return at > start or at <= end

    def _evict(self, now: datetime) -> None:
        now_minute = minute_of_day(now)
        retention = self.config.TRIGGER_RETENTION_MINUTES
        stale = [
            key for key in self._triggered
            if (now_minute - minute_of_day(key[0])) % MINUTES_PER_DAY > retention
        ]
        for key in stale:
            del self._triggered[key]
        if stale:
            logger.debug("Evicted %d triggered entries", len(stale))

    # --- firing ---

    def _fire(self, event: Event, now: datetime) -> TriggerRecord:
        tier = event.tier
        actions = []
        logger.info("Triggering %s", event)

        if tier.triggers_notification and self._notify(event):
            actions.append("notify")

        if tier.plays_audio and self.preferences.audio_enabled:
            if self._safely("play audio", self._play_audio, event):
                actions.append("audio")

        if tier is AlertTier.CRITICAL:
            if self._safely("temporary wake", self._request_wake):
                actions.append("wake")

        record = TriggerRecord(
            event=event,
            fired_at=now,
            schedule_name=self._schedule.name,
            actions=tuple(actions),
        )
        self.bus.publish(record)
        return record

    def effective_volume(self) -> float:
        multiplier = self.config.context_volume(self._schedule.context)
        return self.preferences.effective_volume(multiplier)

    def _notify(self, event: Event) -> bool:
        """Send to every available notifier; True if at least one delivered."""
        notification = Notification.for_event(event)
        delivered = False
        for notifier in self.notifiers:
            if not notifier.is_available():
                continue
            # 每个通道单独兜底，一个坏掉不影响其他通道
            try:
                sent = notifier.send(notification)
            except Exception:
                logger.exception("Notifier %s failed on '%s'", notifier.get_name(), notification.title)
                continue
            if sent:
                delivered = True
            else:
                logger.warning("Notifier %s did not deliver '%s'", notifier.get_name(), notification.title)
        return delivered

    def _play_audio(self, event: Event) -> None:
        if self.audio_player is not None:
            self.audio_player.play(event.kind.audio_key, event.tier, self.effective_volume())

    def _stop_audio(self) -> None:
        if self.audio_player is not None:
            self.audio_player.stop()

    def _request_wake(self) -> None:
        if self.wake_controller is not None:
            self.wake_controller.request_temporary_wake(self.config.TEMPORARY_WAKE_SECONDS)

    def _acquire_session_wake(self) -> None:
        if self.wake_controller is not None:
            self.wake_controller.acquire_session(self.config.SESSION_WAKE_HOURS)

    def _release_wake(self) -> None:
        if self.wake_controller is not None:
            self.wake_controller.release()

    @staticmethod
    def _safely(action: str, func, *args) -> bool:
        """Run a collaborator call; failures are logged and reported as False."""
        try:
            func(*args)
            return True
        except Exception:
            logger.exception("Collaborator failure during %s", action)
            return False
