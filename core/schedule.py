"""
Schedule: the immutable, chronologically ordered day plan for one
(context, activity) pair.

Invariants checked at construction (ValidationError on violation):
- at least one event
- non-rest schedules contain a "start" event
- a duration event ends no later than the next event begins

Also owns the template text format:

    <context>
    <activity>
    [name]
    [version]
    [Time,Event_Type,Alert_Level,Custom_Message,Duration]
    HH:mm,KIND,TIER[,message][,duration]
    ...
"""
from typing import Iterable, List, Optional, Tuple

from core.alert_policy import AlertTier
from core.exceptions import ParseError, ValidationError
from core.models import Activity, ClockLike, Context, Event, clock_time, minute_of_day

DEFAULT_VERSION = "1.0"
TEMPLATE_EXTENSION = ".csv"
HEADER_ROW = "Time,Event_Type,Alert_Level,Custom_Message,Duration"

# name/version 行最多两行
_MAX_METADATA_LINES = 2


def template_filename(context: Context, activity: Activity) -> str:
    return f"{activity.identifier}@{context.identifier}{TEMPLATE_EXTENSION}"


class Schedule:
    """Immutable day schedule. Safe to share between threads."""

    __slots__ = ("_context", "_activity", "_events", "_name", "_version")

    def __init__(
        self,
        context: Context,
        activity: Activity,
        events: Iterable[Event],
        name: Optional[str] = None,
        version: Optional[str] = None,
    ):
        self._context = context
        self._activity = activity
        # 防御性拷贝 + 排序 (sorted 是稳定排序)
        self._events: Tuple[Event, ...] = tuple(sorted(events))
        self._name = (name or "").strip() or f"{activity.display_name}@{context.display_name}"
        self._version = (version or "").strip() or DEFAULT_VERSION
        self._validate()

    def _validate(self) -> None:
        if not self._events:
            raise ValidationError("Schedule cannot be empty")

        if not self._activity.is_unstructured:
            if not any(e.kind.is_start for e in self._events):
                raise ValidationError(
                    f"Non-rest schedule '{self._name}' must contain a START event",
                    hint="Add e.g. a STUDY_START or WORK_START record",
                )

        for current, following in zip(self._events, self._events[1:]):
            if not current.has_duration():
                continue
            end = minute_of_day(current.time) + current.duration_minutes
            if end > minute_of_day(following.time):
                raise ValidationError(
                    f"Overlapping events: {current} ends after {following} starts"
                )

    # --- attributes ---

    @property
    def context(self) -> Context:
        return self._context

    @property
    def activity(self) -> Activity:
        return self._activity

    @property
    def events(self) -> Tuple[Event, ...]:
        return self._events

    @property
    def name(self) -> str:
        return self._name

    @property
    def version(self) -> str:
        return self._version

    @property
    def filename(self) -> str:
        return template_filename(self._context, self._activity)

    # --- time queries ---

    def current_event(self, now: ClockLike) -> Optional[Event]:
        """
        获取当前事件。
        策略：
        1. 时段事件优先（代表持续状态）
        2. 其次是恰好在这一分钟的时间点事件
        """
        for event in self._events:
            if event.has_duration() and event.is_active(now):
                return event
        for event in self._events:
            if not event.has_duration() and event.should_trigger(now):
                return event
        return None

    def next_event(self, now: ClockLike) -> Event:
        """First event strictly after now; wraps to tomorrow's first event."""
        current = clock_time(now).replace(tzinfo=None)
        for event in self._events:
            if event.time > current:
                return event
        return self._events[0]

    def upcoming_events(self, now: ClockLike, window_minutes: int) -> List[Event]:
        """Events in (now, now + window], without wrapping past midnight."""
        current = clock_time(now).replace(tzinfo=None)
        now_seconds = current.hour * 3600 + current.minute * 60 + current.second
        window_end = now_seconds + window_minutes * 60
        upcoming = []
        for event in self._events:
            event_seconds = minute_of_day(event.time) * 60
            if now_seconds < event_seconds <= window_end:
                upcoming.append(event)
        return upcoming

    def events_by_tier(self, tier: AlertTier) -> List[Event]:
        return [e for e in self._events if e.tier is tier]

    def total_activity_minutes(self) -> int:
        """Total minutes of duration events belonging to this schedule's activity."""
        marker = self._activity.name
        return sum(
            e.duration_minutes
            for e in self._events
            if e.has_duration() and marker in e.kind.name
        )

    # --- template text ---

    @classmethod
    def from_text(cls, text: str) -> "Schedule":
        """
        Parse template text.

        Raises:
            ParseError: missing/unknown context or activity, bad event record.
            ValidationError: parsed events violate a schedule invariant.
        """
        lines = [
            (number, raw.strip())
            for number, raw in enumerate(text.splitlines(), start=1)
            if raw.strip() and not raw.strip().startswith("#")
        ]

        if not lines:
            raise ParseError("Missing context identifier", line_number=1, field="context")
        number, context_line = lines[0]
        context = Context.from_identifier(context_line)
        if context is None:
            raise ParseError(
                f"Invalid context '{context_line}'", line_number=number,
                raw_line=context_line, field="context",
            )

        if len(lines) < 2:
            raise ParseError("Missing activity identifier", line_number=number + 1, field="activity")
        number, activity_line = lines[1]
        activity = Activity.from_identifier(activity_line)
        if activity is None:
            raise ParseError(
                f"Invalid activity '{activity_line}'", line_number=number,
                raw_line=activity_line, field="activity",
            )

        body = lines[2:]
        metadata: List[str] = []
        while body and len(metadata) < _MAX_METADATA_LINES and "," not in body[0][1]:
            metadata.append(body[0][1])
            body = body[1:]
        name = metadata[0] if metadata else None
        version = metadata[1] if len(metadata) > 1 else None

        if body and _is_header(body[0][1]):
            body = body[1:]

        events = []
        for number, line in body:
            try:
                events.append(Event.parse(line))
            except ParseError as e:
                raise e.at_line(number, line) from e

        return cls(context, activity, events, name, version)

    def to_text(self) -> str:
        """
        Serialize in the template text format.

        Raises:
            ValidationError: name or version would not read back as a
                metadata line (contains ',' or a newline, or starts with '#').
        """
        for label, value in (("name", self._name), ("version", self._version)):
            if "," in value or "\n" in value or value.startswith("#"):
                raise ValidationError(
                    f"Schedule {label} '{value}' cannot contain ',' or newlines or start with '#'"
                )
        rows = [
            self._context.identifier,
            self._activity.identifier,
            self._name,
            self._version,
            HEADER_ROW,
        ]
        rows.extend(e.to_record() for e in self._events)
        return "\n".join(rows) + "\n"

    # --- dunder ---

    def __eq__(self, other) -> bool:
        if not isinstance(other, Schedule):
            return NotImplemented
        return (
            self._context is other._context
            and self._activity is other._activity
            and self._events == other._events
            and self._name == other._name
            and self._version == other._version
        )

    def __hash__(self) -> int:
        return hash((self._context, self._activity, self._events, self._name, self._version))

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(self._events)

    def __repr__(self) -> str:
        return f"Schedule[{self._name}: {len(self._events)} events, v{self._version}]"


def _is_header(line: str) -> bool:
    return "time" in line.lower() and not line[:1].isdigit()
