from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, time, timedelta

from taskcal.domain.entities import TaskEntity
from taskcal.domain.enums import TaskStatus
from taskcal.domain.errors import ValidationError
from taskcal.domain.filters import CalendarEventFilter, CalendarViewOptions
from taskcal.domain.views import (
    AgendaItem,
    AgendaViewData,
    CalendarDay,
    CalendarEvent,
    CalendarWeek,
    DayViewData,
    MonthViewData,
    WeekViewData,
)
from taskcal.utils.dates import (
    add_days,
    add_minutes,
    end_of_month,
    end_of_week,
    is_same_day,
    is_same_month,
    is_time_overlap,
    start_of_day,
    start_of_month,
    start_of_week,
)

from .recurrence import generate_recurrence_instances, parse_recurrence_rule

logger = logging.getLogger(__name__)

MONTH_GRID_WEEKS = 6


def is_all_day(task: TaskEntity) -> bool:
    if task.all_day is not None:
        return task.all_day
    due = task.due_date or task.start_date
    return due is not None and due.time() == time.min


def _build_event(task: TaskEntity, start: datetime, now: datetime, occurrence: datetime | None) -> CalendarEvent:
    all_day = is_all_day(task)
    end = add_minutes(start, task.estimated_time) if task.estimated_time else start
    status = TaskStatus(task.status)
    event_id = str(task.id)
    if occurrence is not None:
        event_id = f"{task.id}@{occurrence.strftime('%Y%m%dT%H%M%S')}"
    return CalendarEvent(
        id=event_id,
        task_id=task.id,
        title=task.title,
        start=start,
        end=end,
        all_day=all_day,
        status=status,
        priority=task.priority,
        list_id=task.list_id,
        list_color=task.list_color,
        description=task.description or "",
        tags=tuple(task.tags),
        is_recurring=bool(task.recurrence_rule),
        estimated_time=task.estimated_time,
        is_overdue=not status.is_terminal and start < now,
        occurrence=occurrence,
    )


def task_to_calendar_event(task: TaskEntity, now: datetime) -> CalendarEvent | None:
    start = task.due_date or task.start_date
    if start is None:
        return None
    return _build_event(task, start, now, occurrence=None)


def expand_task_events(
    task: TaskEntity,
    now: datetime,
    range_start: datetime | None = None,
    range_end: datetime | None = None,
    max_instances: int = 365,
) -> list[CalendarEvent]:
    """The task's own event followed by its recurrence occurrences.

    A task whose rule cannot be parsed yields no events.
    """
    base = task_to_calendar_event(task, now)
    if base is None:
        return []
    if not task.recurrence_rule:
        return [base]

    window_start = None
    if range_start is not None:
        # occurrences that began earlier can still run into the range
        window_start = range_start - timedelta(days=1, minutes=task.estimated_time or 0)

    try:
        rule = parse_recurrence_rule(task.recurrence_rule)
        instances = generate_recurrence_instances(
            rule,
            base.start,
            max_count=max_instances,
            window_end=range_end,
            window_start=window_start,
            task_id=task.id,
        )
    except (ValueError, OverflowError) as exc:  # ParseError and ValidationError included
        logger.warning("Skipping task %s with invalid recurrence %r: %s", task.id, task.recurrence_rule, exc)
        return []

    events = [base]
    for instance in instances:
        events.append(_build_event(task, instance.date, now, occurrence=instance.date))
    return events


def events_from_tasks(
    tasks: Iterable[TaskEntity],
    now: datetime,
    range_start: datetime | None = None,
    range_end: datetime | None = None,
    max_instances: int = 365,
) -> list[CalendarEvent]:
    events: list[CalendarEvent] = []
    for task in tasks:
        events.extend(expand_task_events(task, now, range_start, range_end, max_instances))
    return events


def event_span(event: CalendarEvent) -> tuple[datetime, datetime]:
    if event.all_day:
        return start_of_day(event.start), start_of_day(event.end) + timedelta(days=1)
    return event.start, event.end


def _intersects(span_start: datetime, span_end: datetime, start: datetime, end: datetime) -> bool:
    if span_start == span_end:
        if start == end:
            return span_start == start
        return start <= span_start < end
    if start == end:
        return span_start <= start < span_end
    return is_time_overlap(span_start, span_end, start, end)


def get_events_for_range(
    events: Iterable[CalendarEvent], start: datetime, end: datetime
) -> list[CalendarEvent]:
    return [event for event in events if _intersects(*event_span(event), start, end)]


def get_events_for_date(events: Iterable[CalendarEvent], date: datetime) -> list[CalendarEvent]:
    day_start = start_of_day(date)
    return get_events_for_range(events, day_start, day_start + timedelta(days=1))


def apply_event_filters(
    events: Iterable[CalendarEvent], event_filter: CalendarEventFilter | None
) -> list[CalendarEvent]:
    filtered = list(events)
    if event_filter is None:
        return filtered

    if event_filter.statuses:
        filtered = [e for e in filtered if e.status in event_filter.statuses]
    if event_filter.priorities:
        filtered = [e for e in filtered if e.priority in event_filter.priorities]
    if event_filter.list_ids:
        filtered = [e for e in filtered if e.list_id in event_filter.list_ids]
    if event_filter.tag_ids:
        filtered = [e for e in filtered if any(tag.id in event_filter.tag_ids for tag in e.tags)]
    if event_filter.search:
        query = event_filter.search.lower()
        filtered = [
            e for e in filtered
            if query in e.title.lower() or query in (e.description or "").lower()
        ]
    if event_filter.date_range is not None:
        range_start, range_end = event_filter.date_range
        filtered = get_events_for_range(filtered, range_start, range_end)
    if not event_filter.include_completed:
        filtered = [e for e in filtered if e.status != TaskStatus.DONE]
    if event_filter.min_priority is not None:
        minimum = event_filter.min_priority.rank
        filtered = [e for e in filtered if e.priority.rank >= minimum]
    if event_filter.exclude_all_day:
        filtered = [e for e in filtered if not e.all_day]
    if event_filter.only_all_day:
        filtered = [e for e in filtered if e.all_day]
    return filtered


def _sorted(events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    return sorted(events, key=lambda e: (not e.all_day, e.start, e.title))


def _collect(
    tasks: Iterable[TaskEntity],
    start: datetime,
    end: datetime,
    now: datetime,
    options: CalendarViewOptions,
) -> list[CalendarEvent]:
    events = events_from_tasks(tasks, now, start, end, options.max_instances)
    events = get_events_for_range(events, start, end)
    return _sorted(apply_event_filters(events, options.event_filter))


def _day(
    date: datetime,
    events: list[CalendarEvent],
    now: datetime,
    options: CalendarViewOptions,
    current_month: bool,
) -> CalendarDay:
    selected = options.selected_date
    return CalendarDay(
        date=date,
        is_current_month=current_month,
        is_today=is_same_day(date, now),
        is_selected=selected is not None and is_same_day(date, selected),
        events=get_events_for_date(events, date),
    )


def generate_month_view(
    tasks: Iterable[TaskEntity],
    reference: datetime,
    now: datetime,
    options: CalendarViewOptions | None = None,
) -> MonthViewData:
    options = options or CalendarViewOptions()
    month_start = start_of_month(reference)
    month_end = end_of_month(reference)
    grid_start = start_of_week(month_start, options.start_of_week)
    grid_end = grid_start + timedelta(days=MONTH_GRID_WEEKS * 7)

    events = _collect(tasks, grid_start, grid_end, now, options)

    weeks = []
    for week_index in range(MONTH_GRID_WEEKS):
        week_start = add_days(grid_start, week_index * 7)
        days = [
            _day(day, events, now, options, is_same_month(day, reference))
            for day in (add_days(week_start, offset) for offset in range(7))
        ]
        weeks.append(CalendarWeek(start_date=week_start, days=days))

    return MonthViewData(
        first_day=month_start,
        last_day=month_end,
        weeks=weeks,
        total_events=len(events),
    )


def generate_week_view(
    tasks: Iterable[TaskEntity],
    reference: datetime,
    now: datetime,
    options: CalendarViewOptions | None = None,
) -> WeekViewData:
    options = options or CalendarViewOptions()
    week_start = start_of_week(reference, options.start_of_week)
    week_end = end_of_week(reference, options.start_of_week)

    events = _collect(tasks, week_start, week_start + timedelta(days=7), now, options)
    days = [_day(add_days(week_start, offset), events, now, options, True) for offset in range(7)]

    return WeekViewData(
        start_date=week_start,
        end_date=week_end,
        days=days,
        hours=options.hours,
        events=events,
    )


def generate_day_view(
    tasks: Iterable[TaskEntity],
    reference: datetime,
    now: datetime,
    options: CalendarViewOptions | None = None,
) -> DayViewData:
    options = options or CalendarViewOptions()
    day_start = start_of_day(reference)
    events = _collect(tasks, day_start, day_start + timedelta(days=1), now, options)
    return DayViewData(
        date=day_start,
        hours=options.hours,
        all_day_events=[e for e in events if e.all_day],
        timed_events=[e for e in events if not e.all_day],
    )


def generate_agenda_view(
    tasks: Iterable[TaskEntity],
    start: datetime,
    end: datetime,
    now: datetime,
    options: CalendarViewOptions | None = None,
) -> AgendaViewData:
    options = options or CalendarViewOptions()
    events = _collect(tasks, start, end, now, options)

    grouped: dict[datetime, list[CalendarEvent]] = {}
    for event in events:
        grouped.setdefault(start_of_day(event.start), []).append(event)

    items = [AgendaItem(date=day, events=_sorted(grouped[day])) for day in sorted(grouped)]
    return AgendaViewData(start_date=start, end_date=end, items=items, total_events=len(events))


def get_overlapping_events(
    events: Iterable[CalendarEvent], start: datetime, end: datetime
) -> list[CalendarEvent]:
    return _sorted(get_events_for_range(events, start, end))


def is_time_slot_available(
    events: Iterable[CalendarEvent],
    start: datetime,
    end: datetime,
    exclude_event_id: str | None = None,
) -> bool:
    if end < start:
        raise ValidationError("Slot end must not be before its start")
    candidates = [event for event in events if event.id != exclude_event_id]
    return not get_overlapping_events(candidates, start, end)
