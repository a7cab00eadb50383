from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from taskcal.domain.entities import ListEntity, TaskEntity
from taskcal.domain.enums import Priority, TaskStatus

NO_TAG_COLOR = "#9CA3AF"
DEFAULT_TAG_COLOR = "#D97757"

STATUS_COLUMNS: tuple[tuple[TaskStatus, str, str], ...] = (
    (TaskStatus.TODO, "To Do", "#6B7280"),
    (TaskStatus.IN_PROGRESS, "In Progress", "#3B82F6"),
    (TaskStatus.DONE, "Done", "#10B981"),
    (TaskStatus.CANCELLED, "Cancelled", "#9CA3AF"),
)

PRIORITY_COLUMNS: tuple[tuple[Priority, str, str], ...] = (
    (Priority.HIGH, "High", "#EF4444"),
    (Priority.MEDIUM, "Medium", "#F59E0B"),
    (Priority.LOW, "Low", "#3B82F6"),
    (Priority.NONE, "No Priority", "#9CA3AF"),
)


@dataclass(frozen=True)
class KanbanColumn:
    id: str
    title: str
    value: str
    color: str | None
    tasks: list[TaskEntity] = field(default_factory=list)


def _ordered(tasks: Iterable[TaskEntity]) -> list[TaskEntity]:
    return sorted(tasks, key=lambda task: task.sort_order)


def group_by_status(tasks: Iterable[TaskEntity]) -> list[KanbanColumn]:
    tasks = list(tasks)
    return [
        KanbanColumn(
            id=f"status-{status.value}",
            title=title,
            value=status.value,
            color=color,
            tasks=_ordered(t for t in tasks if t.status == status),
        )
        for status, title, color in STATUS_COLUMNS
    ]


def group_by_priority(tasks: Iterable[TaskEntity]) -> list[KanbanColumn]:
    tasks = list(tasks)
    return [
        KanbanColumn(
            id=f"priority-{priority.value}",
            title=title,
            value=priority.value,
            color=color,
            tasks=_ordered(t for t in tasks if t.priority == priority),
        )
        for priority, title, color in PRIORITY_COLUMNS
    ]


def group_by_list(tasks: Iterable[TaskEntity], lists: Iterable[ListEntity]) -> list[KanbanColumn]:
    tasks = list(tasks)
    return [
        KanbanColumn(
            id=f"list-{task_list.id}",
            title=task_list.title,
            value=str(task_list.id),
            color=task_list.color,
            tasks=_ordered(t for t in tasks if t.list_id == task_list.id),
        )
        for task_list in sorted(lists, key=lambda item: item.sort_order)
    ]


def group_by_tag(tasks: Iterable[TaskEntity]) -> list[KanbanColumn]:
    tasks = list(tasks)
    tags = {}
    for task in tasks:
        for tag in task.tags:
            tags.setdefault(tag.id, tag)

    columns = [
        KanbanColumn(
            id=f"tag-{tag.id}",
            title=tag.name,
            value=str(tag.id),
            color=tag.color or DEFAULT_TAG_COLOR,
            tasks=_ordered(t for t in tasks if any(item.id == tag.id for item in t.tags)),
        )
        for tag in sorted(tags.values(), key=lambda item: item.name.lower())
    ]

    untagged = [t for t in tasks if not t.tags]
    if untagged:
        columns.append(
            KanbanColumn(id="tag-none", title="No Tag", value="none", color=NO_TAG_COLOR, tasks=_ordered(untagged))
        )
    return columns
