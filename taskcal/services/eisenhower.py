from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from taskcal.domain.entities import TaskEntity
from taskcal.domain.enums import Priority, Quadrant
from taskcal.utils.dates import start_of_day

URGENT_DAYS_THRESHOLD = 2

QUADRANT_LABELS: dict[Quadrant, tuple[str, str]] = {
    Quadrant.DO_FIRST: ("Do First", "Urgent & Important"),
    Quadrant.SCHEDULE: ("Schedule", "Not Urgent & Important"),
    Quadrant.DELEGATE: ("Delegate", "Urgent & Not Important"),
    Quadrant.ELIMINATE: ("Eliminate", "Not Urgent & Not Important"),
}


@dataclass(frozen=True)
class EisenhowerMatrix:
    quadrants: dict[Quadrant, list[TaskEntity]] = field(
        default_factory=lambda: {quadrant: [] for quadrant in Quadrant}
    )

    def counts(self) -> dict[Quadrant, int]:
        return {quadrant: len(tasks) for quadrant, tasks in self.quadrants.items()}


def is_important(task: TaskEntity) -> bool:
    return task.priority in (Priority.HIGH, Priority.MEDIUM)


def is_urgent(task: TaskEntity, now: datetime) -> bool:
    if task.due_date is None or task.status.is_terminal:
        return False
    due_day = start_of_day(task.due_date)
    horizon = start_of_day(now) + timedelta(days=URGENT_DAYS_THRESHOLD)
    return due_day <= horizon


def get_quadrant(
    task: TaskEntity, now: datetime, overrides: Mapping[int, Quadrant] | None = None
) -> Quadrant:
    if overrides and task.id in overrides:
        return Quadrant(overrides[task.id])

    urgent = is_urgent(task, now)
    important = is_important(task)
    if urgent and important:
        return Quadrant.DO_FIRST
    if important:
        return Quadrant.SCHEDULE
    if urgent:
        return Quadrant.DELEGATE
    return Quadrant.ELIMINATE


def build_matrix(
    tasks: Iterable[TaskEntity],
    now: datetime,
    overrides: Mapping[int, Quadrant] | None = None,
    include_completed: bool = False,
) -> EisenhowerMatrix:
    matrix = EisenhowerMatrix()
    for task in tasks:
        if task.status.is_terminal and not include_completed:
            continue
        matrix.quadrants[get_quadrant(task, now, overrides)].append(task)
    return matrix
