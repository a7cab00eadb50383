from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, sessionmaker

from taskcal.domain.entities import ListEntity, Reminder, TagRef, TaskEntity
from taskcal.domain.enums import Priority, Quadrant, ReminderStatus, ReminderType, TaskStatus
from taskcal.domain.filters import TaskFilters

from .db import SessionLocal
from .models import ListModel, PreferenceModel, ReminderModel, TagModel, TaskModel

OPEN_STATUSES = [TaskStatus.TODO.value, TaskStatus.IN_PROGRESS.value]
QUADRANT_OVERRIDES_KEY = "eisenhower.manual_quadrants"


def _to_entity(model: TaskModel) -> TaskEntity:
    return TaskEntity(
        id=model.id,
        title=model.title,
        status=TaskStatus(model.status),
        priority=Priority(model.priority),
        due_date=model.due_date,
        start_date=model.start_date,
        estimated_time=model.estimated_time,
        recurrence_rule=model.recurrence_rule,
        tags=tuple(TagRef(id=tag.id, name=tag.name, color=tag.color) for tag in model.tags),
        list_id=model.list_id,
        list_color=model.task_list.color if model.task_list else None,
        parent_id=model.parent_id,
        description=model.description,
        sort_order=model.sort_order,
        all_day=model.all_day,
        created_at=model.created_at,
        updated_at=model.updated_at,
        completed_at=model.completed_at,
    )


def _to_reminder(model: ReminderModel) -> Reminder:
    return Reminder(
        id=model.id,
        task_id=model.task_id,
        fire_at=model.fire_at,
        type=ReminderType(model.type),
        relative_offset=model.relative_offset,
        status=ReminderStatus(model.status),
        snoozed_until=model.snoozed_until,
        snooze_count=model.snooze_count,
        sent_at=model.sent_at,
        dismissed_at=model.dismissed_at,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _apply_filters(stmt, filters: TaskFilters, now: datetime) -> object:
    if filters.filter_key in {status.value.lower() for status in TaskStatus}:
        stmt = stmt.where(TaskModel.status == filters.filter_key.upper())
    elif filters.filter_key == "overdue":
        stmt = stmt.where(
            TaskModel.due_date.is_not(None),
            TaskModel.due_date < now,
            TaskModel.status.in_(OPEN_STATUSES),
        )
    elif filters.filter_key == "scheduled":
        stmt = stmt.where(TaskModel.due_date.is_not(None))
    elif filters.filter_key == "unscheduled":
        stmt = stmt.where(TaskModel.due_date.is_(None))

    if filters.list_id is not None:
        stmt = stmt.where(TaskModel.list_id == filters.list_id)
    if filters.due_from is not None:
        stmt = stmt.where(TaskModel.due_date >= filters.due_from)
    if filters.due_to is not None:
        stmt = stmt.where(TaskModel.due_date <= filters.due_to)

    if filters.search:
        pattern = f"%{filters.search}%"
        stmt = stmt.where(
            or_(
                TaskModel.title.ilike(pattern),
                TaskModel.description.ilike(pattern),
            )
        )

    return stmt


class TaskRepository:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def list_tasks(self, filters: TaskFilters, now: Optional[datetime] = None) -> list[TaskEntity]:
        with self._session_factory() as session:
            stmt = select(TaskModel)
            stmt = _apply_filters(stmt, filters, now or datetime.now())
            stmt = stmt.order_by(
                TaskModel.sort_order.asc(),
                TaskModel.due_date.is_(None),
                TaskModel.due_date.asc(),
                TaskModel.created_at.desc(),
            )
            return [_to_entity(task) for task in session.scalars(stmt).unique()]

    def get_task(self, task_id: int) -> Optional[TaskEntity]:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            return _to_entity(task) if task else None

    def create_task(self, data: dict) -> TaskEntity:
        data = dict(data)
        tag_ids = data.pop("tag_ids", None)
        with self._session_factory() as session:
            if data.get("sort_order") is None:
                status = data.get("status", TaskStatus.TODO.value)
                data["sort_order"] = self._next_sort_order(session, status)
            task = TaskModel(**data)
            if tag_ids:
                task.tags = self._load_tags(session, tag_ids)
            session.add(task)
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def update_task(self, task_id: int, data: dict) -> Optional[TaskEntity]:
        data = dict(data)
        tag_ids = data.pop("tag_ids", None)
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return None

            if "status" in data and data["status"] != task.status and data.get("sort_order") is None:
                data["sort_order"] = self._next_sort_order(session, data["status"])

            for key, value in data.items():
                setattr(task, key, value)
            if tag_ids is not None:
                task.tags = self._load_tags(session, tag_ids)
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def reorder_tasks(self, task_ids: list[int]) -> None:
        if not task_ids:
            return
        with self._session_factory() as session:
            tasks = session.scalars(select(TaskModel).where(TaskModel.id.in_(task_ids))).unique().all()
            order_map = {task_id: index for index, task_id in enumerate(task_ids, start=1)}
            for task in tasks:
                task.sort_order = order_map.get(task.id, task.sort_order)
            session.commit()

    def delete_task(self, task_id: int) -> None:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return
            session.delete(task)
            session.commit()

    def list_lists(self) -> list[ListEntity]:
        with self._session_factory() as session:
            rows = session.scalars(select(ListModel).order_by(ListModel.sort_order, ListModel.id))
            return [ListEntity(id=row.id, title=row.title, color=row.color, sort_order=row.sort_order) for row in rows]

    def create_list(self, title: str, color: str | None = None) -> ListEntity:
        with self._session_factory() as session:
            max_order = session.scalar(select(func.max(ListModel.sort_order)))
            row = ListModel(title=title, color=color, sort_order=(max_order or 0) + 1)
            session.add(row)
            session.commit()
            return ListEntity(id=row.id, title=row.title, color=row.color, sort_order=row.sort_order)

    def create_tag(self, name: str, color: str | None = None) -> TagRef:
        with self._session_factory() as session:
            row = TagModel(name=name, color=color)
            session.add(row)
            session.commit()
            return TagRef(id=row.id, name=row.name, color=row.color)

    @staticmethod
    def _load_tags(session: Session, tag_ids: list[int]) -> list[TagModel]:
        return list(session.scalars(select(TagModel).where(TagModel.id.in_(tag_ids))))

    @staticmethod
    def _next_sort_order(session: Session, status: str) -> int:
        max_order = session.scalar(
            select(func.max(TaskModel.sort_order)).where(TaskModel.status == status)
        )
        return (max_order or 0) + 1


class ReminderRepository:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def get_reminder(self, reminder_id: int) -> Optional[Reminder]:
        with self._session_factory() as session:
            row = session.get(ReminderModel, reminder_id)
            return _to_reminder(row) if row else None

    def list_reminders(self, statuses: frozenset[ReminderStatus] | None = None) -> list[Reminder]:
        with self._session_factory() as session:
            stmt = select(ReminderModel).order_by(ReminderModel.fire_at.asc())
            if statuses:
                stmt = stmt.where(ReminderModel.status.in_([status.value for status in statuses]))
            return [_to_reminder(row) for row in session.scalars(stmt)]

    def list_for_task(self, task_id: int) -> list[Reminder]:
        with self._session_factory() as session:
            stmt = (
                select(ReminderModel)
                .where(ReminderModel.task_id == task_id)
                .order_by(ReminderModel.fire_at.asc())
            )
            return [_to_reminder(row) for row in session.scalars(stmt)]

    def create_reminder(self, data: dict) -> Reminder:
        with self._session_factory() as session:
            row = ReminderModel(**data)
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_reminder(row)

    def save_reminder(self, reminder: Reminder) -> Reminder:
        with self._session_factory() as session:
            row = session.get(ReminderModel, reminder.id)
            if row is None:
                raise LookupError(f"Reminder {reminder.id} does not exist")
            row.fire_at = reminder.fire_at
            row.relative_offset = reminder.relative_offset
            row.status = reminder.status.value
            row.snoozed_until = reminder.snoozed_until
            row.snooze_count = reminder.snooze_count
            row.sent_at = reminder.sent_at
            row.dismissed_at = reminder.dismissed_at
            session.commit()
            session.refresh(row)
            return _to_reminder(row)


class PreferenceStore:
    """Key-value store for user preferences such as manual quadrant overrides."""

    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def get(self, key: str, default: Any = None) -> Any:
        with self._session_factory() as session:
            row = session.get(PreferenceModel, key)
            return json.loads(row.value) if row else default

    def set(self, key: str, value: Any) -> None:
        with self._session_factory() as session:
            row = session.get(PreferenceModel, key)
            payload = json.dumps(value)
            if row is None:
                session.add(PreferenceModel(key=key, value=payload))
            else:
                row.value = payload
            session.commit()

    def load_quadrant_overrides(self) -> dict[int, Quadrant]:
        raw = self.get(QUADRANT_OVERRIDES_KEY, {})
        return {int(task_id): Quadrant(value) for task_id, value in raw.items()}

    def save_quadrant_overrides(self, overrides: dict[int, Quadrant]) -> None:
        self.set(QUADRANT_OVERRIDES_KEY, {str(task_id): quadrant.value for task_id, quadrant in overrides.items()})
