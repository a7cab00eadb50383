from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Protocol

from taskcal.domain.entities import TaskEntity
from taskcal.domain.enums import Quadrant, TaskStatus
from taskcal.domain.errors import ParseError, ValidationError
from taskcal.domain.filters import CalendarViewOptions, TaskFilters
from taskcal.domain.views import AgendaViewData, DayViewData, MonthViewData, WeekViewData

from . import calendar_views
from .eisenhower import EisenhowerMatrix, build_matrix
from .recurrence import get_next_recurrence, parse_recurrence_rule, serialize_recurrence_rule

logger = logging.getLogger(__name__)


class TaskStore(Protocol):
    def list_tasks(self, filters: TaskFilters, now: datetime | None = None) -> list[TaskEntity]: ...

    def get_task(self, task_id: int) -> TaskEntity | None: ...

    def create_task(self, data: dict) -> TaskEntity: ...

    def update_task(self, task_id: int, data: dict) -> TaskEntity | None: ...

    def delete_task(self, task_id: int) -> None: ...

    def reorder_tasks(self, task_ids: list[int]) -> None: ...


class OverrideStore(Protocol):
    def load_quadrant_overrides(self) -> dict[int, Quadrant]: ...

    def save_quadrant_overrides(self, overrides: dict[int, Quadrant]) -> None: ...


class TaskService:
    def __init__(
        self,
        repo: TaskStore,
        preferences: OverrideStore | None = None,
        view_options: CalendarViewOptions | None = None,
    ) -> None:
        self._repo = repo
        self._preferences = preferences
        self._view_options = view_options or CalendarViewOptions()

    def list_tasks(self, filters: TaskFilters) -> list[TaskEntity]:
        return self._repo.list_tasks(filters)

    def get_task(self, task_id: int) -> TaskEntity | None:
        return self._repo.get_task(task_id)

    def create_task(self, data: dict) -> TaskEntity:
        return self._repo.create_task(self._normalize_data(data))

    def update_task(self, task_id: int, data: dict, now: datetime | None = None) -> TaskEntity | None:
        normalized = self._normalize_data(data)
        status = normalized.get("status")
        if status == TaskStatus.DONE.value and "completed_at" not in normalized:
            normalized["completed_at"] = now or datetime.now()
        if status and status != TaskStatus.DONE.value:
            normalized["completed_at"] = None
        return self._repo.update_task(task_id, normalized)

    def delete_task(self, task_id: int) -> None:
        self._repo.delete_task(task_id)

    def mark_done(self, task_id: int, now: datetime | None = None) -> TaskEntity | None:
        task = self._repo.get_task(task_id)
        if not task:
            return None
        # computed before the status change is committed
        next_data = self._next_occurrence(task)
        done = self.update_task(task_id, {"status": TaskStatus.DONE.value}, now=now)
        if done and next_data:
            self._repo.create_task(next_data)
            logger.info("Created next occurrence of task %s due %s", task.id, next_data["due_date"])
        return done

    def reorder_tasks(self, task_ids: list[int]) -> None:
        self._repo.reorder_tasks(task_ids)

    def month_view(self, reference: datetime, now: datetime) -> MonthViewData:
        return calendar_views.generate_month_view(self._scheduled_tasks(), reference, now, self._view_options)

    def week_view(self, reference: datetime, now: datetime) -> WeekViewData:
        return calendar_views.generate_week_view(self._scheduled_tasks(), reference, now, self._view_options)

    def day_view(self, reference: datetime, now: datetime) -> DayViewData:
        return calendar_views.generate_day_view(self._scheduled_tasks(), reference, now, self._view_options)

    def agenda_view(self, start: datetime, end: datetime, now: datetime) -> AgendaViewData:
        return calendar_views.generate_agenda_view(self._scheduled_tasks(), start, end, now, self._view_options)

    def eisenhower(self, now: datetime) -> EisenhowerMatrix:
        overrides = self._preferences.load_quadrant_overrides() if self._preferences else {}
        return build_matrix(self._repo.list_tasks(TaskFilters(), now), now, overrides)

    def set_quadrant_override(self, task_id: int, quadrant: Quadrant | None) -> None:
        if self._preferences is None:
            raise RuntimeError("No preference store configured")
        overrides = self._preferences.load_quadrant_overrides()
        if quadrant is None:
            overrides.pop(task_id, None)
        else:
            overrides[task_id] = Quadrant(quadrant)
        self._preferences.save_quadrant_overrides(overrides)

    def _scheduled_tasks(self) -> list[TaskEntity]:
        return self._repo.list_tasks(TaskFilters(filter_key="scheduled"))

    def _normalize_data(self, data: dict) -> dict:
        normalized = dict(data)
        for key in ("status", "priority"):
            value = normalized.get(key)
            if value is not None and hasattr(value, "value"):
                normalized[key] = value.value
        rule = normalized.get("recurrence_rule")
        if rule:
            # reject bad rules at write time so views never have to skip them
            parse_recurrence_rule(rule)
        estimated = normalized.get("estimated_time")
        if estimated is not None and estimated < 0:
            raise ValidationError("Estimated time cannot be negative")
        return normalized

    def _next_occurrence(self, task: TaskEntity) -> dict | None:
        if not task.recurrence_rule or not task.due_date:
            return None

        try:
            rule = parse_recurrence_rule(task.recurrence_rule)
        except (ParseError, ValidationError) as exc:
            logger.warning("Task %s has an invalid recurrence rule: %s", task.id, exc)
            return None

        next_due = get_next_recurrence(rule, task.due_date)
        if next_due is None:
            return None
        if rule.count is not None:
            # the next task starts a new series, so it carries the remaining count
            if rule.count <= 1:
                return None
            rule = replace(rule, count=rule.count - 1)

        next_start = None
        if task.start_date is not None:
            next_start = task.start_date + (next_due - task.due_date)

        return {
            "title": task.title,
            "description": task.description,
            "status": TaskStatus.TODO.value,
            "priority": task.priority.value,
            "due_date": next_due,
            "start_date": next_start,
            "estimated_time": task.estimated_time,
            "all_day": task.all_day,
            "recurrence_rule": serialize_recurrence_rule(rule),
            "list_id": task.list_id,
            "parent_id": task.parent_id,
            "tag_ids": [tag.id for tag in task.tags],
        }


def default_agenda_range(now: datetime, days: int = 7) -> tuple[datetime, datetime]:
    start = datetime.combine(now.date(), datetime.min.time(), tzinfo=now.tzinfo)
    return start, start + timedelta(days=days)
