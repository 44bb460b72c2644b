"""
Core Data Models for Discipline Coach.
Defines contexts, activities, event kinds and the immutable schedule Event.
"""
import re
from dataclasses import dataclass
from datetime import datetime, time
from enum import Enum
from typing import Optional, Union

from core.alert_policy import AlertTier
from core.exceptions import ParseError, ValidationError

MINUTES_PER_DAY = 24 * 60
HALF_DAY_MINUTES = 12 * 60

# 24 小时制 HH:mm，小时允许一位数
_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

ClockLike = Union[time, datetime]


def clock_time(value: ClockLike) -> time:
    """Reduce a datetime to its wall-clock time; times pass through unchanged."""
    if isinstance(value, datetime):
        return value.time()
    return value


def minute_of_day(value: ClockLike) -> int:
    """Minutes since midnight, seconds ignored."""
    t = clock_time(value)
    return t.hour * 60 + t.minute


def time_from_minutes(minutes: int) -> time:
    """Build a wall-clock time from minutes since midnight, wrapping every 24h."""
    minutes %= MINUTES_PER_DAY
    return time(minutes // 60, minutes % 60)


def parse_clock(text: str) -> time:
    """Parse 24-hour 'HH:mm'; raises ValueError otherwise."""
    match = _TIME_PATTERN.match(text.strip())
    if not match:
        raise ValueError(f"not a 24-hour HH:mm time: {text!r}")
    return time(int(match.group(1)), int(match.group(2)))


def format_clock(value: ClockLike) -> str:
    return clock_time(value).strftime("%H:%M")


class Context(str, Enum):
    """用户所处的场景（决定音频是否允许及默认音量）"""
    HOME = "home"
    UNIVERSITY = "university"
    OFFICE = "office"
    LIBRARY = "library"
    GYM = "gym"
    TRAVEL = "travel"

    @property
    def identifier(self) -> str:
        return self.value

    @property
    def allows_audio(self) -> bool:
        return _CONTEXT_ATTRIBUTES[self][0]

    @property
    def auto_quiet_mode(self) -> bool:
        return _CONTEXT_ATTRIBUTES[self][1]

    @property
    def default_volume_multiplier(self) -> float:
        return _CONTEXT_ATTRIBUTES[self][2]

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @classmethod
    def from_identifier(cls, identifier: str) -> Optional["Context"]:
        wanted = identifier.strip().lower()
        for context in cls:
            if context.value == wanted:
                return context
        return None


# (allows_audio, auto_quiet_mode, default_volume_multiplier)
_CONTEXT_ATTRIBUTES = {
    Context.HOME: (True, False, 1.0),
    Context.UNIVERSITY: (False, True, 0.3),
    Context.OFFICE: (False, False, 0.5),
    Context.LIBRARY: (False, True, 0.0),
    Context.GYM: (True, False, 0.8),
    Context.TRAVEL: (True, False, 0.6),
}


class Activity(str, Enum):
    """用户打算进行的活动类型"""
    STUDY = "study"
    WORK = "work"
    REST = "rest"          # 非结构化，不要求开始事件
    EXERCISE = "exercise"
    RESEARCH = "research"

    @property
    def identifier(self) -> str:
        return self.value

    @property
    def default_block_minutes(self) -> int:
        return _ACTIVITY_ATTRIBUTES[self][0]

    @property
    def default_break_minutes(self) -> int:
        return _ACTIVITY_ATTRIBUTES[self][1]

    @property
    def requires_focus(self) -> bool:
        return _ACTIVITY_ATTRIBUTES[self][2]

    @property
    def max_daily_hours(self) -> int:
        return _ACTIVITY_ATTRIBUTES[self][3]

    @property
    def blocks_before_long_break(self) -> int:
        return _ACTIVITY_ATTRIBUTES[self][4]

    @property
    def is_unstructured(self) -> bool:
        return self is Activity.REST

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @classmethod
    def from_identifier(cls, identifier: str) -> Optional["Activity"]:
        wanted = identifier.strip().lower()
        for activity in cls:
            if activity.value == wanted:
                return activity
        return None


# (block_minutes, break_minutes, requires_focus, max_daily_hours, blocks_before_long_break)
_ACTIVITY_ATTRIBUTES = {
    Activity.STUDY: (90, 15, True, 4, 3),
    Activity.WORK: (120, 10, True, 6, 4),
    Activity.REST: (0, 0, False, 0, 0),
    Activity.EXERCISE: (60, 5, False, 2, 1),
    Activity.RESEARCH: (180, 30, True, 3, 2),
}


class EventKind(str, Enum):
    """日程事件的语义类别"""
    WAKE_UP = "WAKE_UP"
    NO_COFFEE = "NO_COFFEE"
    MEAL_TIME = "MEAL_TIME"
    MEAL_REMINDER_5MIN = "MEAL_REMINDER_5MIN"
    MEAL_REMINDER_10MIN = "MEAL_REMINDER_10MIN"
    MEAL_REMINDER_15MIN = "MEAL_REMINDER_15MIN"
    STUDY_START = "STUDY_START"
    STUDY_REMAINING_30MIN = "STUDY_REMAINING_30MIN"
    STUDY_REMAINING_1H = "STUDY_REMAINING_1H"
    STUDY_REMAINING_2H = "STUDY_REMAINING_2H"
    BREAK_REMINDER = "BREAK_REMINDER"
    WORK_START = "WORK_START"
    WORK_END = "WORK_END"
    WORK_REMAINING_1H = "WORK_REMAINING_1H"
    WORK_REMAINING_2H = "WORK_REMAINING_2H"
    EXERCISE_START = "EXERCISE_START"
    EXERCISE_END = "EXERCISE_END"
    STOP_SCREENS = "STOP_SCREENS"
    BEDTIME = "BEDTIME"
    TRANSITION = "TRANSITION"
    CUSTOM = "CUSTOM"

    @property
    def audio_key(self) -> str:
        return _KIND_ATTRIBUTES[self][0]

    @property
    def is_restriction(self) -> bool:
        """True: 以禁止项呈现（红色）；False: 普通提醒（蓝色）"""
        return _KIND_ATTRIBUTES[self][1]

    @property
    def default_message(self) -> Optional[str]:
        return _KIND_ATTRIBUTES[self][2]

    @property
    def is_start(self) -> bool:
        return "START" in self.name

    @classmethod
    def from_token(cls, token: str) -> "EventKind":
        """Resolve a kind name case-insensitively; raises KeyError when unknown."""
        return cls[token.strip().upper()]

    @classmethod
    def from_audio_key(cls, audio_key: str) -> Optional["EventKind"]:
        wanted = audio_key.strip().lower()
        for kind in cls:
            if kind.audio_key == wanted:
                return kind
        return None


# (audio_key, is_restriction, default_message)
_KIND_ATTRIBUTES = {
    EventKind.WAKE_UP: ("wake_up", True, "Time to wake up!"),
    EventKind.NO_COFFEE: ("no_coffee", True, "No more caffeine"),
    EventKind.MEAL_TIME: ("meal_time", False, "Meal time"),
    EventKind.MEAL_REMINDER_5MIN: ("meal_5min", False, "Meal in 5 minutes"),
    EventKind.MEAL_REMINDER_10MIN: ("meal_10min", False, None),
    EventKind.MEAL_REMINDER_15MIN: ("meal_15min", False, None),
    EventKind.STUDY_START: ("study_start", False, "Begin study session"),
    EventKind.STUDY_REMAINING_30MIN: ("study_remaining_30min", False, None),
    EventKind.STUDY_REMAINING_1H: ("study_remaining_1h", False, None),
    EventKind.STUDY_REMAINING_2H: ("study_remaining_2h", False, "2 hours study remaining"),
    EventKind.BREAK_REMINDER: ("break_reminder", False, "Time for a break"),
    EventKind.WORK_START: ("work_start", False, None),
    EventKind.WORK_END: ("work_end", False, None),
    EventKind.WORK_REMAINING_1H: ("work_remaining_1h", False, None),
    EventKind.WORK_REMAINING_2H: ("work_remaining_2h", False, None),
    EventKind.EXERCISE_START: ("exercise_start", False, None),
    EventKind.EXERCISE_END: ("exercise_end", False, None),
    EventKind.STOP_SCREENS: ("stop_screens", True, "Turn off all screens"),
    EventKind.BEDTIME: ("bedtime", True, "Time for bed"),
    EventKind.TRANSITION: ("transition", False, None),
    EventKind.CUSTOM: ("custom", False, None),
}


@dataclass(frozen=True)
class Event:
    """
    日程中的单个事件（不可变）。

    duration_minutes == 0 表示时间点事件，> 0 表示覆盖 [time, time + duration) 的时段事件。
    排序规则：先按时间，再按 tier.priority（Critical 在前）。
    """
    time: time
    kind: EventKind
    tier: AlertTier
    custom_message: Optional[str] = None
    duration_minutes: int = 0

    def __post_init__(self):
        # 分钟精度；负时长归零
        if self.time.second or self.time.microsecond or self.time.tzinfo:
            object.__setattr__(self, "time", time(self.time.hour, self.time.minute))
        if self.duration_minutes < 0:
            object.__setattr__(self, "duration_minutes", 0)
        # 消息去首尾空白，空串视为无消息
        if self.custom_message is not None:
            object.__setattr__(self, "custom_message", self.custom_message.strip() or None)

    # --- ordering ---

    def sort_key(self):
        return (minute_of_day(self.time), self.tier.priority)

    def __lt__(self, other: "Event") -> bool:
        return self.sort_key() < other.sort_key()

    def __le__(self, other: "Event") -> bool:
        return self.sort_key() <= other.sort_key()

    def __gt__(self, other: "Event") -> bool:
        return self.sort_key() > other.sort_key()

    def __ge__(self, other: "Event") -> bool:
        return self.sort_key() >= other.sort_key()

    # --- queries ---

    @property
    def key(self):
        """Identity used for exactly-once triggering."""
        return (self.time, self.kind)

    def has_duration(self) -> bool:
        return self.duration_minutes > 0

    def time_string(self) -> str:
        return format_clock(self.time)

    def display_message(self) -> str:
        if self.custom_message:
            return self.custom_message
        if self.kind.default_message:
            return self.kind.default_message
        return self.kind.name.replace("_", " ")

    def end_time(self) -> time:
        return time_from_minutes(minute_of_day(self.time) + self.duration_minutes)

    def minutes_until(self, now: ClockLike) -> int:
        """
        Signed minutes from now to the event.

        A difference below -720 (more than 12h in the past) is read as
        "later today / tomorrow" and shifted by a full day.
        """
        current = clock_time(now)
        event_seconds = self.time.hour * 3600 + self.time.minute * 60
        now_seconds = current.hour * 3600 + current.minute * 60 + current.second
        minutes = int((event_seconds - now_seconds) / 60)  # truncate toward zero
        if minutes < -HALF_DAY_MINUTES:
            minutes += MINUTES_PER_DAY
        return minutes

    def should_trigger(self, now: ClockLike) -> bool:
        current = clock_time(now)
        return self.time.hour == current.hour and self.time.minute == current.minute

    def is_active(self, now: ClockLike) -> bool:
        if not self.has_duration():
            return self.should_trigger(now)
        current = clock_time(now).replace(tzinfo=None)
        return self.time <= current < self.end_time()

    # --- text record ---

    def to_record(self) -> str:
        """Serialize as 'HH:mm,KIND,TIER[,message][,duration]'."""
        if self.custom_message and ("," in self.custom_message or "\n" in self.custom_message):
            raise ValidationError(
                f"Custom message of {self.time_string()} {self.kind.name} cannot contain ',' or newlines"
            )
        parts = [self.time_string(), self.kind.name, self.tier.name]
        if self.custom_message:
            parts.append(self.custom_message)
        if self.has_duration():
            if not self.custom_message:
                parts.append("")  # 空消息占位，保证时长字段位置不变
            parts.append(str(self.duration_minutes))
        return ",".join(parts)

    @classmethod
    def parse(cls, record: str) -> "Event":
        """
        Parse one text record.

        Raises:
            ParseError: too few/many fields, bad time, unknown kind or tier,
                non-integer duration.
        """
        parts = [p.strip() for p in record.split(",")]
        if len(parts) < 3:
            raise ParseError("Expected at least time,kind,tier", raw_line=record)
        if len(parts) > 5:
            raise ParseError("Too many fields (a custom message cannot contain ',')", raw_line=record)

        try:
            event_time = parse_clock(parts[0])
        except ValueError:
            raise ParseError(f"Invalid time '{parts[0]}'", raw_line=record, field="time") from None

        try:
            kind = EventKind.from_token(parts[1])
        except KeyError:
            raise ParseError(f"Unknown event kind '{parts[1]}'", raw_line=record, field="kind") from None

        try:
            tier = AlertTier.from_token(parts[2])
        except KeyError:
            raise ParseError(f"Unknown alert tier '{parts[2]}'", raw_line=record, field="tier") from None

        message = parts[3] if len(parts) > 3 and parts[3] else None

        duration = 0
        if len(parts) > 4 and parts[4]:
            try:
                duration = int(parts[4])
            except ValueError:
                raise ParseError(
                    f"Invalid duration '{parts[4]}'", raw_line=record, field="duration"
                ) from None

        return cls(event_time, kind, tier, message, duration)

    def __str__(self) -> str:
        span = f"{self.duration_minutes} min" if self.has_duration() else "point event"
        return f"Event[{self.time_string()}: {self.kind.name} ({self.tier.name}) - {span}]"
