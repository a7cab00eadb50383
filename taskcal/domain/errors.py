from __future__ import annotations


class TaskCalError(Exception):
    """Base class for errors raised by taskcal."""


class ValidationError(TaskCalError, ValueError):
    pass


class ParseError(TaskCalError, ValueError):
    pass


class InvalidRecurrenceFormat(ParseError):
    pass


class InvalidInterval(ValidationError):
    pass


class InvalidTimezone(ValidationError):
    pass


class InvalidSnoozeTime(ValidationError):
    pass


class InvalidReminderState(ValidationError):
    pass
