from datetime import time

import pytest

from core.alert_policy import AlertTier
from core.exceptions import ParseError, ValidationError
from core.models import Activity, Context, Event, EventKind, parse_clock
from core.schedule import HEADER_ROW, Schedule, template_filename


def _event(hhmm: str, kind=EventKind.CUSTOM, tier=AlertTier.TRANSITION, message=None, duration=0) -> Event:
    return Event(parse_clock(hhmm), kind, tier, message, duration)


def _study_day() -> Schedule:
    return Schedule(
        Context.HOME,
        Activity.STUDY,
        [
            _event("12:00", EventKind.MEAL_TIME),
            _event("09:00", EventKind.STUDY_START, message="Focus", duration=90),
            _event("07:45", EventKind.NO_COFFEE, AlertTier.CRITICAL),
            _event("10:30", EventKind.STUDY_REMAINING_1H, AlertTier.REFERENCE),
        ],
    )


STUDY_TEMPLATE = """\
home
study
Morning Study
2.1
Time,Event_Type,Alert_Level,Custom_Message,Duration
07:45,NO_COFFEE,CRITICAL
09:00,STUDY_START,TRANSITION,Focus,90
12:00,MEAL_TIME,TRANSITION
"""


def test_events_are_sorted_and_defaults_applied():
    schedule = _study_day()
    assert [e.time_string() for e in schedule.events] == ["07:45", "09:00", "10:30", "12:00"]
    assert schedule.name == "Study@Home"
    assert schedule.version == "1.0"
    assert schedule.filename == "study@home.csv"
    assert template_filename(Context.GYM, Activity.EXERCISE) == "exercise@gym.csv"
    assert len(schedule) == 4


def test_empty_schedule_is_rejected():
    with pytest.raises(ValidationError):
        Schedule(Context.HOME, Activity.REST, [])


def test_structured_activity_requires_start_event():
    with pytest.raises(ValidationError):
        Schedule(Context.OFFICE, Activity.WORK, [_event("12:00", EventKind.MEAL_TIME)])

    rest = Schedule(Context.HOME, Activity.REST, [_event("12:00", EventKind.MEAL_TIME)])
    assert len(rest) == 1


def test_overlapping_duration_is_rejected():
    with pytest.raises(ValidationError):
        Schedule(
            Context.HOME,
            Activity.STUDY,
            [
                _event("09:00", EventKind.STUDY_START, duration=90),
                _event("10:00", EventKind.BREAK_REMINDER),
            ],
        )


def test_duration_may_end_exactly_when_next_event_starts():
    schedule = Schedule(
        Context.HOME,
        Activity.STUDY,
        [
            _event("09:00", EventKind.STUDY_START, duration=90),
            _event("10:30", EventKind.BREAK_REMINDER, duration=15),
        ],
    )
    assert len(schedule) == 2


def test_caffeine_cutoff_scenario():
    schedule = _study_day()
    no_coffee = schedule.events[0]

    assert schedule.current_event(time(7, 45)) is no_coffee
    assert schedule.next_event(time(7, 44)) is no_coffee
    assert schedule.next_event(time(7, 45)).kind is EventKind.STUDY_START
    assert no_coffee.minutes_until(time(7, 30)) == 15


def test_duration_event_takes_precedence_while_active():
    schedule = _study_day()
    study = schedule.events[1]

    assert schedule.current_event(time(9, 0)) is study
    assert schedule.current_event(time(10, 29)) is study
    # block has ended; the point event at 10:30 takes over for its minute
    assert schedule.current_event(time(10, 30)).kind is EventKind.STUDY_REMAINING_1H
    assert schedule.current_event(time(10, 31)) is None


def test_next_event_wraps_to_first_event_tomorrow():
    schedule = _study_day()
    assert schedule.next_event(time(23, 0)) is schedule.events[0]


def test_upcoming_events_window_does_not_wrap():
    schedule = _study_day()
    upcoming = schedule.upcoming_events(time(7, 45), 180)
    assert [e.time_string() for e in upcoming] == ["09:00", "10:30"]
    assert schedule.upcoming_events(time(23, 0), 600) == []


def test_events_by_tier_and_activity_minutes():
    schedule = _study_day()
    assert [e.kind for e in schedule.events_by_tier(AlertTier.CRITICAL)] == [EventKind.NO_COFFEE]
    assert schedule.total_activity_minutes() == 90


def test_from_text_reads_metadata_and_skips_header():
    schedule = Schedule.from_text(STUDY_TEMPLATE)
    assert schedule.context is Context.HOME
    assert schedule.activity is Activity.STUDY
    assert schedule.name == "Morning Study"
    assert schedule.version == "2.1"
    assert len(schedule) == 3
    assert schedule.events[1].custom_message == "Focus"
    assert schedule.events[1].duration_minutes == 90


def test_from_text_without_metadata_or_header():
    text = "# my template\nhome\n\nstudy\n07:45,NO_COFFEE,CRITICAL\n09:00,STUDY_START,TRANSITION\n"
    schedule = Schedule.from_text(text)
    assert schedule.name == "Study@Home"
    assert schedule.version == "1.0"
    assert len(schedule) == 2


def test_text_round_trip():
    schedule = Schedule.from_text(STUDY_TEMPLATE)
    text = schedule.to_text()
    assert HEADER_ROW in text
    assert Schedule.from_text(text) == schedule


@pytest.mark.parametrize("name", ["Deep work, morning", "#1 plan", "two\nlines"])
def test_to_text_rejects_names_that_would_not_read_back(name):
    schedule = Schedule(Context.HOME, Activity.REST, [_event("08:00")], name=name)
    with pytest.raises(ValidationError):
        schedule.to_text()


def test_to_text_rejects_comment_like_version():
    schedule = Schedule(Context.HOME, Activity.REST, [_event("08:00")], version="#2")
    with pytest.raises(ValidationError):
        schedule.to_text()


def test_name_and_version_are_trimmed():
    schedule = Schedule(Context.HOME, Activity.REST, [_event("08:00")], name="  Lazy day ", version=" 2.1")
    assert (schedule.name, schedule.version) == ("Lazy day", "2.1")
    assert Schedule.from_text(schedule.to_text()) == schedule


def test_from_text_rejects_unknown_context():
    with pytest.raises(ParseError) as excinfo:
        Schedule.from_text("moon\nstudy\n09:00,STUDY_START,TRANSITION\n")
    assert excinfo.value.field == "context"
    assert excinfo.value.line_number == 1


def test_from_text_reports_bad_record_line_number():
    text = STUDY_TEMPLATE + "13:00,NAP,TRANSITION\n"
    with pytest.raises(ParseError) as excinfo:
        Schedule.from_text(text)
    assert excinfo.value.line_number == 9
    assert excinfo.value.field == "kind"
    assert "line 9" in excinfo.value.message


def test_from_text_propagates_validation_errors():
    with pytest.raises(ValidationError):
        Schedule.from_text("office\nwork\n12:00,MEAL_TIME,TRANSITION\n")
