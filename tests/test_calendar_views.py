from __future__ import annotations

import logging
from datetime import datetime, timedelta

import pytest

from taskcal.domain.entities import TagRef, TaskEntity
from taskcal.domain.enums import Priority, TaskStatus
from taskcal.domain.errors import ValidationError
from taskcal.domain.filters import CalendarEventFilter, CalendarViewOptions
from taskcal.services.calendar_views import (
    apply_event_filters,
    events_from_tasks,
    expand_task_events,
    generate_agenda_view,
    generate_day_view,
    generate_month_view,
    generate_week_view,
    get_events_for_date,
    get_overlapping_events,
    is_time_slot_available,
    task_to_calendar_event,
)

NOW = datetime(2026, 2, 10, 12, 0)


def _task(task_id: int = 1, **kwargs) -> TaskEntity:
    kwargs.setdefault("title", f"Task {task_id}")
    return TaskEntity(id=task_id, **kwargs)


def test_all_day_detection() -> None:
    midnight = task_to_calendar_event(_task(due_date=datetime(2026, 3, 1)), NOW)
    afternoon = task_to_calendar_event(_task(due_date=datetime(2026, 3, 1, 14, 30)), NOW)
    explicit = task_to_calendar_event(_task(due_date=datetime(2026, 3, 1), all_day=False), NOW)

    assert midnight.all_day
    assert not afternoon.all_day
    assert not explicit.all_day


def test_overdue_flag() -> None:
    yesterday = NOW - timedelta(days=1)

    assert task_to_calendar_event(_task(due_date=yesterday), NOW).is_overdue
    assert not task_to_calendar_event(_task(due_date=yesterday, status=TaskStatus.DONE), NOW).is_overdue
    assert not task_to_calendar_event(_task(due_date=NOW + timedelta(hours=1)), NOW).is_overdue


def test_event_end_follows_estimate() -> None:
    due = datetime(2026, 2, 12, 9)
    timed = task_to_calendar_event(_task(due_date=due, estimated_time=90), NOW)
    instant = task_to_calendar_event(_task(due_date=due), NOW)

    assert timed.end == datetime(2026, 2, 12, 10, 30)
    assert instant.end == instant.start == due
    assert timed.id == "1"


def test_task_without_dates_is_not_an_event() -> None:
    assert task_to_calendar_event(_task(), NOW) is None
    assert expand_task_events(_task(), NOW) == []


def test_recurring_task_expands_into_occurrences() -> None:
    task = _task(due_date=datetime(2026, 2, 27, 9), recurrence_rule="FREQ=DAILY;COUNT=3")

    events = expand_task_events(task, NOW)

    assert [e.start for e in events] == [datetime(2026, 2, 27, 9), datetime(2026, 2, 28, 9), datetime(2026, 3, 1, 9)]
    assert all(e.is_recurring for e in events)
    assert events[1].id == "1@20260228T090000"
    assert len({e.id for e in events}) == 3


def test_month_view_grid_shape() -> None:
    view = generate_month_view([], datetime(2026, 2, 15), NOW)

    assert len(view.weeks) == 6
    assert all(len(week.days) == 7 for week in view.weeks)
    assert view.days[0].date == datetime(2026, 2, 1)
    assert view.days[0].is_current_month
    assert view.days[-1].date == datetime(2026, 3, 14)
    assert sum(day.is_current_month for day in view.days) == 28
    assert view.first_day == datetime(2026, 2, 1)
    assert view.last_day.date() == datetime(2026, 2, 28).date()
    assert view.total_events == 0
    assert all(not day.events for day in view.days)


def test_month_view_respects_week_start() -> None:
    view = generate_month_view([], datetime(2026, 2, 15), NOW, CalendarViewOptions(start_of_week=1))

    assert view.days[0].date == datetime(2026, 1, 26)
    assert not view.days[0].is_current_month


def test_month_view_places_events_and_flags_today() -> None:
    options = CalendarViewOptions(selected_date=datetime(2026, 2, 20))
    tasks = [_task(1, due_date=datetime(2026, 2, 10, 14)), _task(2)]

    view = generate_month_view(tasks, datetime(2026, 2, 15), NOW, options)
    by_date = {day.date: day for day in view.days}

    assert [e.task_id for e in by_date[datetime(2026, 2, 10)].events] == [1]
    assert by_date[datetime(2026, 2, 10)].is_today
    assert by_date[datetime(2026, 2, 20)].is_selected
    assert not by_date[datetime(2026, 2, 11)].events
    assert view.total_events == 1


def test_month_view_expands_recurrence_through_grid() -> None:
    task = _task(due_date=datetime(2026, 2, 27, 9), recurrence_rule="FREQ=DAILY")

    view = generate_month_view([task], datetime(2026, 2, 15), NOW)

    # Feb 27 through the last grid cell on Mar 14
    assert view.total_events == 16
    assert len(view.days[-1].events) == 1


def test_malformed_rule_excludes_task(caplog: pytest.LogCaptureFixture) -> None:
    good = _task(1, due_date=datetime(2026, 2, 12, 9))
    bad = _task(2, due_date=datetime(2026, 2, 12, 10), recurrence_rule="FREQ=BOGUS")

    with caplog.at_level(logging.WARNING):
        view = generate_month_view([good, bad], datetime(2026, 2, 15), NOW)

    assert view.total_events == 1
    assert "invalid recurrence" in caplog.text


def test_views_are_deterministic() -> None:
    tasks = [
        _task(1, due_date=datetime(2026, 2, 12, 9), recurrence_rule="FREQ=WEEKLY;BYDAY=TU,TH"),
        _task(2, due_date=datetime(2026, 2, 13)),
    ]

    assert generate_month_view(tasks, datetime(2026, 2, 15), NOW) == generate_month_view(
        tasks, datetime(2026, 2, 15), NOW
    )


def test_week_view() -> None:
    tasks = [_task(1, due_date=datetime(2026, 2, 12, 9)), _task(2, due_date=datetime(2026, 2, 16, 9))]

    view = generate_week_view(tasks, datetime(2026, 2, 11), NOW)

    assert view.start_date == datetime(2026, 2, 8)
    assert view.end_date == datetime(2026, 2, 14, 23, 59, 59, 999999)
    assert len(view.days) == 7
    assert view.hours == list(range(6, 23))
    assert [e.task_id for e in view.events] == [1]


def test_day_view_separates_all_day_events() -> None:
    tasks = [
        _task(1, title="Standup", due_date=datetime(2026, 2, 12, 9)),
        _task(2, title="Holiday", due_date=datetime(2026, 2, 12)),
        _task(3, title="Tomorrow", due_date=datetime(2026, 2, 13)),
    ]

    view = generate_day_view(tasks, datetime(2026, 2, 12, 15), NOW)

    assert [e.title for e in view.all_day_events] == ["Holiday"]
    assert [e.title for e in view.timed_events] == ["Standup"]
    assert [e.title for e in view.events] == ["Holiday", "Standup"]


def test_agenda_groups_and_orders_by_day() -> None:
    tasks = [
        _task(1, title="Late", due_date=datetime(2026, 2, 12, 17)),
        _task(2, title="Early", due_date=datetime(2026, 2, 12, 8)),
        _task(3, title="All day", due_date=datetime(2026, 2, 12)),
        _task(4, title="Next", due_date=datetime(2026, 2, 11, 10)),
        _task(5, title="Outside", due_date=datetime(2026, 2, 20, 10)),
    ]

    view = generate_agenda_view(tasks, datetime(2026, 2, 10), datetime(2026, 2, 17), NOW)

    assert [item.date for item in view.items] == [datetime(2026, 2, 11), datetime(2026, 2, 12)]
    assert [e.title for e in view.items[1].events] == ["All day", "Early", "Late"]
    assert view.total_events == 4


def test_completed_tasks_hidden_unless_requested() -> None:
    tasks = [_task(1, due_date=datetime(2026, 2, 12, 9), status=TaskStatus.DONE)]

    hidden = generate_day_view(tasks, datetime(2026, 2, 12), NOW)
    shown = generate_day_view(
        tasks,
        datetime(2026, 2, 12),
        NOW,
        CalendarViewOptions(event_filter=CalendarEventFilter(include_completed=True)),
    )

    assert hidden.events == []
    assert len(shown.events) == 1


def test_event_filters_combine_with_and() -> None:
    work = TagRef(id=1, name="work")
    events = events_from_tasks(
        [
            _task(1, title="Write report", due_date=datetime(2026, 2, 12, 9), priority=Priority.HIGH, tags=(work,)),
            _task(2, title="Report review", due_date=datetime(2026, 2, 12, 11), priority=Priority.LOW, tags=(work,)),
            _task(3, title="Gym", due_date=datetime(2026, 2, 12), priority=Priority.HIGH),
        ],
        NOW,
    )

    assert len(apply_event_filters(events, None)) == 3
    assert [e.task_id for e in apply_event_filters(events, CalendarEventFilter(search="REPORT"))] == [1, 2]
    assert [e.task_id for e in apply_event_filters(events, CalendarEventFilter(tag_ids=frozenset({1})))] == [1, 2]
    assert [
        e.task_id
        for e in apply_event_filters(events, CalendarEventFilter(search="report", min_priority=Priority.MEDIUM))
    ] == [1]
    assert [e.task_id for e in apply_event_filters(events, CalendarEventFilter(only_all_day=True))] == [3]
    assert [e.task_id for e in apply_event_filters(events, CalendarEventFilter(exclude_all_day=True))] == [1, 2]
    assert [
        e.task_id
        for e in apply_event_filters(events, CalendarEventFilter(priorities=frozenset({Priority.LOW})))
    ] == [2]


def test_events_for_date_include_all_day_span() -> None:
    events = events_from_tasks(
        [_task(1, due_date=datetime(2026, 2, 12)), _task(2, due_date=datetime(2026, 2, 13))], NOW
    )

    assert [e.task_id for e in get_events_for_date(events, datetime(2026, 2, 12, 18))] == [1]


def test_time_slot_availability() -> None:
    events = events_from_tasks([_task(1, due_date=datetime(2026, 2, 12, 9), estimated_time=60)], NOW)

    assert is_time_slot_available(events, datetime(2026, 2, 12, 10), datetime(2026, 2, 12, 11))
    assert not is_time_slot_available(events, datetime(2026, 2, 12, 9, 30), datetime(2026, 2, 12, 10, 30))
    assert is_time_slot_available(
        events, datetime(2026, 2, 12, 9, 30), datetime(2026, 2, 12, 10, 30), exclude_event_id="1"
    )
    assert [e.task_id for e in get_overlapping_events(events, datetime(2026, 2, 12, 8), datetime(2026, 2, 12, 12))] == [1]
    with pytest.raises(ValidationError):
        is_time_slot_available(events, datetime(2026, 2, 12, 11), datetime(2026, 2, 12, 10))


def test_instant_event_blocks_slot_containing_it() -> None:
    events = events_from_tasks([_task(1, due_date=datetime(2026, 2, 12, 9, 30))], NOW)

    assert not is_time_slot_available(events, datetime(2026, 2, 12, 9), datetime(2026, 2, 12, 10))
    assert is_time_slot_available(events, datetime(2026, 2, 12, 10), datetime(2026, 2, 12, 11))


def test_rule_running_past_last_year_keeps_view_intact() -> None:
    good = _task(1, due_date=datetime(2026, 2, 12, 9), recurrence_rule="FREQ=WEEKLY")
    far = _task(2, due_date=datetime(2026, 2, 13, 9), recurrence_rule="FREQ=YEARLY;INTERVAL=9000")

    view = generate_month_view([good, far], datetime(2026, 2, 15), NOW)
    by_date = {day.date: day for day in view.days}

    assert [e.task_id for e in by_date[datetime(2026, 2, 13)].events] == [2]
    assert [e.task_id for e in by_date[datetime(2026, 2, 19)].events] == [1]
    assert view.total_events == 6
