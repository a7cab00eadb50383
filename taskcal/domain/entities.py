from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from .enums import Frequency, Priority, ReminderStatus, ReminderType, TaskStatus
from .errors import InvalidInterval, ValidationError


@dataclass(frozen=True)
class TagRef:
    id: int
    name: str
    color: str | None = None


@dataclass(frozen=True)
class TaskEntity:
    id: int | None
    title: str
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.NONE
    due_date: Optional[datetime] = None
    start_date: Optional[datetime] = None
    estimated_time: int | None = None
    recurrence_rule: str | None = None
    tags: tuple[TagRef, ...] = ()
    list_id: int | None = None
    list_color: str | None = None
    parent_id: int | None = None
    description: str = ""
    sort_order: int = 0
    all_day: bool | None = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class ListEntity:
    id: int | None
    title: str
    color: str | None = None
    sort_order: int = 0


@dataclass(frozen=True)
class RecurrenceRule:
    """Value object for a repeating schedule.

    ``by_weekday`` uses 0 = Sunday .. 6 = Saturday, matching the calendar's
    week-start convention. At most one of ``count`` and ``until`` is set;
    neither means the rule never ends.
    """

    frequency: Frequency
    interval: int = 1
    count: int | None = None
    until: Optional[datetime | date] = None
    by_weekday: frozenset[int] | None = None
    by_month_day: int | None = None

    def __post_init__(self) -> None:
        if isinstance(self.interval, bool) or not isinstance(self.interval, int) or self.interval < 1:
            raise InvalidInterval(f"Interval must be a positive integer, got {self.interval!r}")
        if self.count is not None and self.until is not None:
            raise ValidationError("A recurrence rule cannot end both after COUNT and UNTIL")
        if self.count is not None and self.count < 1:
            raise ValidationError(f"Count must be at least 1, got {self.count}")
        if self.by_weekday is not None:
            if self.frequency != Frequency.WEEKLY:
                raise ValidationError("Weekdays can only be set on weekly rules")
            if not self.by_weekday:
                raise ValidationError("Weekday set must not be empty")
            if any(day not in range(7) for day in self.by_weekday):
                raise ValidationError(f"Weekday indexes must be within 0-6, got {sorted(self.by_weekday)}")
            object.__setattr__(self, "by_weekday", frozenset(self.by_weekday))
        if self.by_month_day is not None:
            if self.frequency not in (Frequency.MONTHLY, Frequency.YEARLY):
                raise ValidationError("Day of month can only be set on monthly or yearly rules")
            if not 1 <= self.by_month_day <= 31:
                raise ValidationError(f"Day of month must be within 1-31, got {self.by_month_day}")

    @property
    def end_mode(self) -> str:
        if self.count is not None:
            return "count"
        if self.until is not None:
            return "until"
        return "never"


@dataclass(frozen=True)
class RecurrenceInstance:
    date: datetime
    task_id: int | None
    is_first: bool = False


@dataclass(frozen=True)
class Reminder:
    id: int | None
    task_id: int
    fire_at: datetime
    type: ReminderType = ReminderType.IN_APP
    relative_offset: int | None = None
    status: ReminderStatus = ReminderStatus.PENDING
    snoozed_until: Optional[datetime] = None
    snooze_count: int = 0
    sent_at: Optional[datetime] = None
    dismissed_at: Optional[datetime] = None
    created_at: Optional[datetime] = field(default=None, compare=False)
    updated_at: Optional[datetime] = field(default=None, compare=False)
