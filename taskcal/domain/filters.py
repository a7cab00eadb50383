from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import Priority, TaskStatus


@dataclass(frozen=True)
class TaskFilters:
    filter_key: str = "all"
    search: str | None = None
    list_id: int | None = None
    due_from: Optional[datetime] = None
    due_to: Optional[datetime] = None


@dataclass(frozen=True)
class CalendarEventFilter:
    statuses: frozenset[TaskStatus] = frozenset()
    priorities: frozenset[Priority] = frozenset()
    list_ids: frozenset[int] = frozenset()
    tag_ids: frozenset[int] = frozenset()
    search: str | None = None
    date_range: tuple[datetime, datetime] | None = None
    include_completed: bool = False
    min_priority: Priority | None = None
    exclude_all_day: bool = False
    only_all_day: bool = False


@dataclass(frozen=True)
class CalendarViewOptions:
    start_of_week: int = 0
    selected_date: Optional[datetime] = None
    day_start_hour: int = 6
    day_end_hour: int = 22
    max_instances: int = 365
    event_filter: CalendarEventFilter = field(default_factory=CalendarEventFilter)

    @property
    def hours(self) -> list[int]:
        return list(range(self.day_start_hour, self.day_end_hour + 1))
