import logging
from datetime import datetime, timezone
from typing import Optional

import typer

from taskcal.config import SETTINGS
from taskcal.domain.errors import TaskCalError
from taskcal.domain.filters import CalendarViewOptions
from taskcal.domain.views import CalendarEvent
from taskcal.infra.db import SessionLocal, create_schema, engine, init_db
from taskcal.infra.logging import setup_logging
from taskcal.infra.repository import PreferenceStore, ReminderRepository, TaskRepository
from taskcal.services.eisenhower import QUADRANT_LABELS
from taskcal.services.recurrence import RECURRENCE_PRESETS, get_recurrence_description, parse_recurrence_rule
from taskcal.services.reminders import REMINDER_PRESETS, ReminderService
from taskcal.services.task_service import TaskService, default_agenda_range
from taskcal.utils.dates import format_date_full, format_duration, format_time, format_weekday
from taskcal.utils.timezone import COMMON_TIMEZONES, get_timezone_offset, utc_to_local

app = typer.Typer(help="Calendar and reminder tools for taskcal.")
logger = logging.getLogger(__name__)


def _now() -> datetime:
    # tasks are stored as naive wall-clock times in the configured zone
    return utc_to_local(datetime.now(timezone.utc), SETTINGS.timezone).replace(tzinfo=None)


def _parse_day(value: Optional[str], now: datetime) -> datetime:
    if not value:
        return now
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise typer.BadParameter(f"Expected an ISO date, got {value!r}") from exc


def _service() -> TaskService:
    options = CalendarViewOptions(
        start_of_week=SETTINGS.week_start,
        day_start_hour=SETTINGS.day_start_hour,
        day_end_hour=SETTINGS.day_end_hour,
        max_instances=SETTINGS.recurrence_max_instances,
    )
    return TaskService(TaskRepository(SessionLocal), PreferenceStore(SessionLocal), options)


def _reminders() -> ReminderService:
    return ReminderService(ReminderRepository(SessionLocal))


def _event_line(event: CalendarEvent) -> str:
    when = "all day" if event.all_day else format_time(event.start)
    parts = [f"  {when:>8}  {event.title}"]
    if event.estimated_time:
        parts.append(f"({format_duration(event.estimated_time)})")
    if event.is_recurring:
        parts.append("[repeats]")
    if event.is_overdue:
        parts.append("[overdue]")
    return " ".join(parts)


def _format_offset(minutes: int) -> str:
    sign = "+" if minutes >= 0 else "-"
    hours, rest = divmod(abs(minutes), 60)
    return f"UTC{sign}{hours:02d}:{rest:02d}"


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level")) -> None:
    setup_logging("DEBUG" if verbose else None)
    init_db()


@app.command("init-db")
def init_database() -> None:
    """Create all tables (for local SQLite setups without alembic)."""
    create_schema(engine)
    typer.echo("Schema created.")


@app.command()
def month(day: Optional[str] = typer.Argument(None, help="Any day in the month, ISO format")) -> None:
    now = _now()
    view = _service().month_view(_parse_day(day, now), now)
    typer.echo(f"{format_date_full(view.first_day)} - {format_date_full(view.last_day)}")
    for week in view.weeks:
        cells = []
        for cell in week.days:
            marker = "*" if cell.is_today else " "
            label = f"{cell.date.day:>2}{marker}" if cell.is_current_month else "  " + marker
            count = f"({len(cell.events)})" if cell.events else "   "
            cells.append(f"{label}{count}")
        typer.echo(" ".join(cells))
    typer.echo(f"{view.total_events} event(s)")


@app.command()
def week(day: Optional[str] = typer.Argument(None, help="Any day in the week, ISO format")) -> None:
    now = _now()
    view = _service().week_view(_parse_day(day, now), now)
    for cell in view.days:
        typer.echo(f"{format_weekday(cell.date)}, {format_date_full(cell.date)}")
        for event in cell.events:
            typer.echo(_event_line(event))


@app.command()
def day(day: Optional[str] = typer.Argument(None, help="Day to show, ISO format")) -> None:
    now = _now()
    view = _service().day_view(_parse_day(day, now), now)
    typer.echo(f"{format_weekday(view.date)}, {format_date_full(view.date)}")
    for event in view.all_day_events:
        typer.echo(_event_line(event))
    for event in view.timed_events:
        typer.echo(_event_line(event))


@app.command()
def agenda(days: int = typer.Option(7, min=1, help="Number of days to list")) -> None:
    now = _now()
    start, end = default_agenda_range(now, days)
    view = _service().agenda_view(start, end, now)
    if not view.items:
        typer.echo("Nothing scheduled.")
        return
    for item in view.items:
        typer.echo(f"{format_weekday(item.date)}, {format_date_full(item.date)}")
        for event in item.events:
            typer.echo(_event_line(event))


@app.command()
def matrix() -> None:
    """Open tasks sorted into the Eisenhower quadrants."""
    grouped = _service().eisenhower(_now())
    for quadrant, tasks in grouped.quadrants.items():
        title, subtitle = QUADRANT_LABELS[quadrant]
        typer.echo(f"{title} ({subtitle}): {len(tasks)}")
        for task in tasks:
            typer.echo(f"  - {task.title}")


@app.command("describe-rule")
def describe_rule(rule: str) -> None:
    try:
        typer.echo(get_recurrence_description(parse_recurrence_rule(rule)))
    except TaskCalError as exc:
        typer.echo(f"Invalid rule: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command()
def presets() -> None:
    """List the named repeat and reminder presets."""
    typer.echo("Repeat:")
    for name, rule in RECURRENCE_PRESETS.items():
        typer.echo(f"  {name:<14} {get_recurrence_description(parse_recurrence_rule(rule))}")
    typer.echo("Remind:")
    for name, (label, _) in REMINDER_PRESETS.items():
        typer.echo(f"  {name:<14} {label}")


@app.command()
def timezones() -> None:
    now = datetime.now(timezone.utc)
    for name, label in COMMON_TIMEZONES:
        marker = "*" if name == SETTINGS.timezone else " "
        typer.echo(f"{marker} {name:<22} {_format_offset(get_timezone_offset(name, now)):<10} {label}")


@app.command()
def remind(
    task_id: int,
    preset: str = typer.Option("at_deadline", help="One of the reminder presets"),
    at: Optional[str] = typer.Option(None, help="Exact time, ISO format (for the custom preset)"),
) -> None:
    if preset not in REMINDER_PRESETS:
        raise typer.BadParameter(f"Unknown preset {preset!r}; see `taskcal presets`")
    label, offset = REMINDER_PRESETS[preset]
    if offset is None and not at:
        raise typer.BadParameter("The custom preset needs --at")

    task = TaskRepository(SessionLocal).get_task(task_id)
    if task is None:
        typer.echo(f"No task #{task_id}.", err=True)
        raise typer.Exit(code=1)

    now = _now()
    fire_at = _parse_day(at, now) if offset is None else None
    try:
        reminder = _reminders().create_reminder(task, now, fire_at=fire_at, relative_offset=offset)
    except TaskCalError as exc:
        typer.echo(f"Cannot set reminder: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Reminder #{reminder.id} for {task.title!r} at {reminder.fire_at:%Y-%m-%d %H:%M} ({label})")


@app.command("reminders-due")
def reminders_due(send: bool = typer.Option(False, help="Mark listed reminders as sent")) -> None:
    now = _now()
    service = _reminders()
    if send:
        delivered = service.dispatch_due(now, lambda r: logger.info("Reminder %s for task %s", r.id, r.task_id))
        typer.echo(f"{len(delivered)} reminder(s) sent.")
        return
    for reminder in service.list_due(now):
        typer.echo(f"#{reminder.id} task {reminder.task_id} at {reminder.fire_at:%Y-%m-%d %H:%M} ({reminder.status.value})")


if __name__ == "__main__":
    app()
