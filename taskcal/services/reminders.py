from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Protocol

from taskcal.domain.entities import Reminder, TaskEntity
from taskcal.domain.enums import ReminderStatus, ReminderType
from taskcal.domain.errors import InvalidReminderState, InvalidSnoozeTime, ValidationError

logger = logging.getLogger(__name__)

# label, minutes before the due date (None = pick a time)
REMINDER_PRESETS: dict[str, tuple[str, int | None]] = {
    "at_deadline": ("At time of task", 0),
    "5min_before": ("5 minutes before", 5),
    "15min_before": ("15 minutes before", 15),
    "30min_before": ("30 minutes before", 30),
    "1hour_before": ("1 hour before", 60),
    "1day_before": ("1 day before", 1440),
    "custom": ("Custom time", None),
}

ACTIVE_STATUSES = frozenset({ReminderStatus.PENDING, ReminderStatus.SNOOZED})
SNOOZABLE_STATUSES = frozenset({ReminderStatus.PENDING, ReminderStatus.SENT, ReminderStatus.SNOOZED})


def compute_fire_at(due_date: datetime | None, offset_minutes: int) -> datetime:
    if due_date is None:
        raise ValidationError("Task must have a due date for relative reminders")
    if offset_minutes < 0:
        raise ValidationError(f"Reminder offset cannot be negative, got {offset_minutes}")
    return due_date - timedelta(minutes=offset_minutes)


def resolve_fire_at(
    fire_at: datetime | None, relative_offset: int | None, due_date: datetime | None
) -> datetime:
    if relative_offset is not None:
        return compute_fire_at(due_date, relative_offset)
    if fire_at is not None:
        return fire_at
    if due_date is not None:
        return due_date
    raise ValidationError("Either fire_at or relative_offset must be provided")


def effective_fire_time(reminder: Reminder, now: datetime) -> datetime:
    if reminder.snoozed_until is not None and reminder.snoozed_until > now:
        return reminder.snoozed_until
    return reminder.fire_at


def is_due(reminder: Reminder, now: datetime) -> bool:
    if reminder.status not in ACTIVE_STATUSES:
        return False
    return effective_fire_time(reminder, now) <= now


def snooze(
    reminder: Reminder,
    now: datetime,
    until: datetime | None = None,
    minutes: int | None = None,
) -> Reminder:
    if reminder.status not in SNOOZABLE_STATUSES:
        raise InvalidReminderState(f"Cannot snooze a {reminder.status.value.lower()} reminder")
    if until is None:
        if minutes is None:
            raise InvalidSnoozeTime("Either minutes or until must be provided")
        until = now + timedelta(minutes=minutes)
    if until <= now:
        raise InvalidSnoozeTime("Snooze time must be in the future")
    return replace(
        reminder,
        status=ReminderStatus.SNOOZED,
        snoozed_until=until,
        snooze_count=reminder.snooze_count + 1,
        updated_at=now,
    )


def dismiss(reminder: Reminder, now: datetime) -> Reminder:
    if reminder.status == ReminderStatus.DISMISSED:
        return reminder
    return replace(
        reminder,
        status=ReminderStatus.DISMISSED,
        dismissed_at=now,
        snoozed_until=None,
        updated_at=now,
    )


def mark_sent(reminder: Reminder, now: datetime) -> Reminder:
    if reminder.status not in ACTIVE_STATUSES:
        raise InvalidReminderState(f"Cannot send a {reminder.status.value.lower()} reminder")
    return replace(
        reminder,
        status=ReminderStatus.SENT,
        sent_at=now,
        snoozed_until=None,
        updated_at=now,
    )


class ReminderStore(Protocol):
    def get_reminder(self, reminder_id: int) -> Reminder | None: ...

    def list_reminders(self, statuses: frozenset[ReminderStatus] | None = None) -> list[Reminder]: ...

    def create_reminder(self, data: dict) -> Reminder: ...

    def save_reminder(self, reminder: Reminder) -> Reminder: ...


class ReminderService:
    def __init__(self, repo: ReminderStore) -> None:
        self._repo = repo

    def create_reminder(
        self,
        task: TaskEntity,
        now: datetime,
        fire_at: datetime | None = None,
        relative_offset: int | None = None,
        reminder_type: ReminderType = ReminderType.IN_APP,
    ) -> Reminder:
        resolved = resolve_fire_at(fire_at, relative_offset, task.due_date)
        if resolved < now:
            raise ValidationError("Reminder time must be in the future")
        return self._repo.create_reminder({
            "task_id": task.id,
            "type": reminder_type.value,
            "fire_at": resolved,
            "relative_offset": relative_offset,
            "status": ReminderStatus.PENDING.value,
        })

    def snooze_reminder(
        self,
        reminder_id: int,
        now: datetime,
        until: datetime | None = None,
        minutes: int | None = None,
    ) -> Reminder | None:
        reminder = self._repo.get_reminder(reminder_id)
        if not reminder:
            return None
        return self._repo.save_reminder(snooze(reminder, now, until=until, minutes=minutes))

    def dismiss_reminder(self, reminder_id: int, now: datetime) -> Reminder | None:
        reminder = self._repo.get_reminder(reminder_id)
        if not reminder:
            return None
        dismissed = dismiss(reminder, now)
        if dismissed is reminder:
            return reminder
        return self._repo.save_reminder(dismissed)

    def reschedule_for_task(self, task: TaskEntity, now: datetime) -> list[Reminder]:
        """Recompute offset-based reminders after the task's due date moved."""
        updated = []
        for reminder in self._repo.list_reminders(ACTIVE_STATUSES):
            if reminder.task_id != task.id or reminder.relative_offset is None:
                continue
            fire_at = compute_fire_at(task.due_date, reminder.relative_offset)
            updated.append(self._repo.save_reminder(
                replace(reminder, fire_at=fire_at, status=ReminderStatus.PENDING, snoozed_until=None, updated_at=now)
            ))
        return updated

    def list_due(self, now: datetime) -> list[Reminder]:
        due = [r for r in self._repo.list_reminders(ACTIVE_STATUSES) if is_due(r, now)]
        return sorted(due, key=lambda r: effective_fire_time(r, now))

    def dispatch_due(self, now: datetime, notify: Callable[[Reminder], None]) -> list[Reminder]:
        sent = []
        for reminder in self.list_due(now):
            try:
                notify(reminder)
            except Exception:  # noqa: BLE001
                logger.exception("Delivery failed for reminder %s", reminder.id)
                continue
            sent.append(self._repo.save_reminder(mark_sent(reminder, now)))
        return sent
