from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .entities import TagRef
from .enums import Priority, TaskStatus


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    task_id: int | None
    title: str
    start: datetime
    end: datetime
    all_day: bool
    status: TaskStatus
    priority: Priority
    list_id: int | None = None
    list_color: str | None = None
    description: str = ""
    tags: tuple[TagRef, ...] = ()
    is_recurring: bool = False
    estimated_time: int | None = None
    is_overdue: bool = False
    occurrence: datetime | None = None


@dataclass(frozen=True)
class CalendarDay:
    date: datetime
    is_current_month: bool
    is_today: bool
    is_selected: bool
    events: list[CalendarEvent] = field(default_factory=list)


@dataclass(frozen=True)
class CalendarWeek:
    start_date: datetime
    days: list[CalendarDay]


@dataclass(frozen=True)
class MonthViewData:
    first_day: datetime
    last_day: datetime
    weeks: list[CalendarWeek]
    total_events: int

    @property
    def days(self) -> list[CalendarDay]:
        return [day for week in self.weeks for day in week.days]


@dataclass(frozen=True)
class WeekViewData:
    start_date: datetime
    end_date: datetime
    days: list[CalendarDay]
    hours: list[int]
    events: list[CalendarEvent]


@dataclass(frozen=True)
class DayViewData:
    date: datetime
    hours: list[int]
    all_day_events: list[CalendarEvent]
    timed_events: list[CalendarEvent]

    @property
    def events(self) -> list[CalendarEvent]:
        return [*self.all_day_events, *self.timed_events]


@dataclass(frozen=True)
class AgendaItem:
    date: datetime
    events: list[CalendarEvent]


@dataclass(frozen=True)
class AgendaViewData:
    start_date: datetime
    end_date: datetime
    items: list[AgendaItem]
    total_events: int
