"""
CoachingSession: one running schedule, polled from a background thread.

The session owns a TriggerEngine and a daemon thread that calls poll() every
CHECK_INTERVAL_SECONDS. Foreground callers pause/resume/end the session and
read status snapshots for display.
"""
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from core.config_manager import config
from core.logger import get_logger
from core.models import MINUTES_PER_DAY, Activity, Context, Event
from core.schedule import Schedule
from core.template_store import TemplateStore
from scheduler.trigger_bus import TriggerRecord
from scheduler.trigger_engine import EngineState, TriggerEngine

logger = get_logger("coaching_session")


@dataclass
class SessionStatus:
    """Read-only snapshot of a session at one instant."""
    state: EngineState
    current_event: Optional[Event]
    next_event: Event
    minutes_until_next: int
    upcoming: List[Event] = field(default_factory=list)

    @property
    def countdown(self) -> str:
        return format_countdown(self.minutes_until_next)


def format_countdown(minutes: int) -> str:
    """90 -> '1h 30m', 45 -> '45m'."""
    minutes = max(0, minutes)
    hours, rest = divmod(minutes, 60)
    if hours:
        return f"{hours}h {rest}m"
    return f"{rest}m"


class CoachingSession:

    def __init__(
        self,
        schedule: Schedule,
        engine: Optional[TriggerEngine] = None,
        clock: Callable[[], datetime] = datetime.now,
        interval: Optional[float] = None,
    ):
        self.schedule = schedule
        self.engine = engine or TriggerEngine(clock=clock)
        self.clock = clock
        self.interval = interval if interval is not None else config.CHECK_INTERVAL_SECONDS
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> EngineState:
        return self.engine.state

    @property
    def is_polling(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def begin(self, background: bool = True) -> None:
        """
        Start the engine and, unless background is False, the polling thread.

        The first poll catches up events from the minute the session starts in.
        """
        self.engine.start(self.schedule, now=self.clock(), catch_up=True)
        if not background:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop, name="coach-poller", daemon=True
        )
        self._thread.start()
        logger.info("Polling %r every %.0fs", self.schedule, self.interval)

    def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            if self._stop_event.wait(self.interval):
                break

    def tick(self) -> List[TriggerRecord]:
        """Run one poll now."""
        try:
            return self.engine.poll(self.clock())
        except Exception:
            # 轮询线程不能因单次失败退出
            logger.exception("Poll failed")
            return []

    def pause(self) -> None:
        self.engine.pause()

    def resume(self) -> None:
        self.engine.resume()

    def end(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the engine and join the polling thread. Idempotent."""
        self._stop_event.set()
        self.engine.stop()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def status(self, now: Optional[datetime] = None) -> SessionStatus:
        now = now or self.clock()
        upcoming_event = self.schedule.next_event(now)
        minutes = upcoming_event.minutes_until(now)
        if minutes < 0:
            # next_event 已回绕到明天的第一个事件
            minutes += MINUTES_PER_DAY
        return SessionStatus(
            state=self.engine.state,
            current_event=self.schedule.current_event(now),
            next_event=upcoming_event,
            minutes_until_next=minutes,
            upcoming=self.schedule.upcoming_events(now, config.UPCOMING_WINDOW_MINUTES),
        )

    def __enter__(self) -> "CoachingSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.end()


def open_session(
    store: TemplateStore,
    context: Context,
    activity: Activity,
    engine: Optional[TriggerEngine] = None,
    clock: Callable[[], datetime] = datetime.now,
    interval: Optional[float] = None,
) -> Optional[CoachingSession]:
    """Load the template for a pair and wrap it in a session; None on a miss."""
    schedule = store.load_schedule(context, activity)
    if schedule is None:
        return None
    return CoachingSession(schedule, engine=engine, clock=clock, interval=interval)
