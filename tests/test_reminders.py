from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from taskcal.domain.entities import Reminder, TaskEntity
from taskcal.domain.enums import ReminderStatus, ReminderType
from taskcal.domain.errors import InvalidReminderState, InvalidSnoozeTime, ValidationError
from taskcal.services.reminders import (
    ReminderService,
    compute_fire_at,
    dismiss,
    is_due,
    mark_sent,
    snooze,
)

NOW = datetime(2026, 2, 10, 9, 0)


class FakeReminderRepo:
    def __init__(self) -> None:
        self.reminders: dict[int, Reminder] = {}
        self._id = 1

    def get_reminder(self, reminder_id: int) -> Reminder | None:
        return self.reminders.get(reminder_id)

    def list_reminders(self, statuses: frozenset[ReminderStatus] | None = None) -> list[Reminder]:
        return [r for r in self.reminders.values() if not statuses or r.status in statuses]

    def create_reminder(self, data: dict) -> Reminder:
        reminder = Reminder(
            id=self._id,
            task_id=data["task_id"],
            fire_at=data["fire_at"],
            type=ReminderType(data["type"]),
            relative_offset=data.get("relative_offset"),
            status=ReminderStatus(data["status"]),
        )
        self.reminders[reminder.id] = reminder
        self._id += 1
        return reminder

    def save_reminder(self, reminder: Reminder) -> Reminder:
        self.reminders[reminder.id] = reminder
        return reminder


def _reminder(**kwargs) -> Reminder:
    kwargs.setdefault("fire_at", NOW)
    return Reminder(id=1, task_id=1, **kwargs)


def test_compute_fire_at() -> None:
    due = datetime(2026, 2, 10, 15)

    assert compute_fire_at(due, 15) == datetime(2026, 2, 10, 14, 45)
    assert compute_fire_at(due, 0) == due
    with pytest.raises(ValidationError):
        compute_fire_at(due, -5)
    with pytest.raises(ValidationError):
        compute_fire_at(None, 15)


def test_snooze_into_the_past_fails() -> None:
    with pytest.raises(InvalidSnoozeTime):
        snooze(_reminder(), NOW, until=NOW - timedelta(minutes=1))
    with pytest.raises(InvalidSnoozeTime):
        snooze(_reminder(), NOW, until=NOW)
    with pytest.raises(InvalidSnoozeTime):
        snooze(_reminder(), NOW)


def test_snoozed_reminder_is_not_due_until_snooze_ends() -> None:
    snoozed = snooze(_reminder(), NOW, minutes=30)

    assert snoozed.status == ReminderStatus.SNOOZED
    assert snoozed.snoozed_until == NOW + timedelta(minutes=30)
    assert snoozed.snooze_count == 1
    assert not is_due(snoozed, NOW + timedelta(minutes=15))
    assert is_due(snoozed, NOW + timedelta(minutes=30))


def test_sent_reminder_can_be_snoozed_again() -> None:
    sent = mark_sent(_reminder(), NOW)
    snoozed = snooze(sent, NOW, minutes=10)

    assert sent.status == ReminderStatus.SENT
    assert not is_due(sent, NOW + timedelta(hours=1))
    assert snoozed.status == ReminderStatus.SNOOZED


def test_dismiss_is_idempotent() -> None:
    dismissed = dismiss(_reminder(), NOW)
    again = dismiss(dismissed, NOW + timedelta(hours=1))

    assert dismissed.status == ReminderStatus.DISMISSED
    assert dismissed.dismissed_at == NOW
    assert again is dismissed
    assert not is_due(dismissed, NOW)


def test_dismissed_reminder_cannot_be_snoozed_or_sent() -> None:
    dismissed = dismiss(_reminder(), NOW)

    with pytest.raises(InvalidReminderState):
        snooze(dismissed, NOW, minutes=5)
    with pytest.raises(InvalidReminderState):
        mark_sent(dismissed, NOW)


def test_service_creates_relative_reminder() -> None:
    service = ReminderService(FakeReminderRepo())
    task = TaskEntity(id=3, title="Dentist", due_date=datetime(2026, 2, 11, 10))

    reminder = service.create_reminder(task, NOW, relative_offset=60)

    assert reminder.fire_at == datetime(2026, 2, 11, 9)
    assert reminder.status == ReminderStatus.PENDING
    with pytest.raises(ValidationError):
        service.create_reminder(task, NOW, fire_at=NOW - timedelta(hours=1))


def test_service_reschedules_when_due_date_moves() -> None:
    repo = FakeReminderRepo()
    service = ReminderService(repo)
    task = TaskEntity(id=3, title="Dentist", due_date=datetime(2026, 2, 11, 10))
    relative = service.create_reminder(task, NOW, relative_offset=30)
    fixed = service.create_reminder(task, NOW, fire_at=datetime(2026, 2, 10, 20))

    moved = replace(task, due_date=datetime(2026, 2, 12, 10))
    updated = service.reschedule_for_task(moved, NOW)

    assert [r.id for r in updated] == [relative.id]
    assert repo.reminders[relative.id].fire_at == datetime(2026, 2, 12, 9, 30)
    assert repo.reminders[fixed.id].fire_at == datetime(2026, 2, 10, 20)


def test_list_due_and_dismiss_through_service() -> None:
    repo = FakeReminderRepo()
    service = ReminderService(repo)
    task = TaskEntity(id=1, title="Call", due_date=datetime(2026, 2, 10, 12))
    late = service.create_reminder(task, NOW, fire_at=datetime(2026, 2, 10, 11))
    early = service.create_reminder(task, NOW, fire_at=datetime(2026, 2, 10, 10))

    later = datetime(2026, 2, 10, 11, 30)
    assert [r.id for r in service.list_due(later)] == [early.id, late.id]

    service.dismiss_reminder(early.id, later)
    assert [r.id for r in service.list_due(later)] == [late.id]
    assert service.dismiss_reminder(99, later) is None


def test_dispatch_continues_after_delivery_failure(caplog: pytest.LogCaptureFixture) -> None:
    repo = FakeReminderRepo()
    service = ReminderService(repo)
    task = TaskEntity(id=1, title="Call", due_date=datetime(2026, 2, 10, 12))
    first = service.create_reminder(task, NOW, fire_at=datetime(2026, 2, 10, 10))
    second = service.create_reminder(task, NOW, fire_at=datetime(2026, 2, 10, 10, 30))

    def notify(reminder: Reminder) -> None:
        if reminder.id == first.id:
            raise ConnectionError("push gateway down")

    with caplog.at_level(logging.ERROR):
        sent = service.dispatch_due(datetime(2026, 2, 10, 11), notify)

    assert [r.id for r in sent] == [second.id]
    assert repo.reminders[first.id].status == ReminderStatus.PENDING
    assert repo.reminders[second.id].status == ReminderStatus.SENT
    assert "Delivery failed" in caplog.text


def test_snooze_through_service() -> None:
    repo = FakeReminderRepo()
    service = ReminderService(repo)
    task = TaskEntity(id=1, title="Call", due_date=datetime(2026, 2, 10, 12))
    reminder = service.create_reminder(task, NOW, fire_at=NOW)

    snoozed = service.snooze_reminder(reminder.id, NOW, minutes=15)

    assert snoozed.status == ReminderStatus.SNOOZED
    assert repo.reminders[reminder.id].snoozed_until == NOW + timedelta(minutes=15)
    assert service.snooze_reminder(42, NOW, minutes=15) is None
