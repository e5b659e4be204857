"""
Group todos into due-date buckets for display.

Buckets come out in date order with "Today" always present, followed by a
"No Due Date" bucket when any todo lacks a due date. Naive timestamps are
read as wall-clock time in the timezone of ``now``.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from typing import Any, Optional, Sequence

NO_DUE_DATE = "No Due Date"


@dataclass
class TodoGroup:
    date: Optional[date]
    label: str
    todos: list = field(default_factory=list)
    is_past: bool = False


def _as_instant(moment: datetime, tz: Optional[tzinfo]) -> datetime:
    if moment.tzinfo is not None:
        return moment
    if tz is not None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone()


def _calendar_day(moment: datetime, tz: Optional[tzinfo]) -> date:
    if moment.tzinfo is None:
        return moment.date()
    if tz is None:
        return moment.astimezone().date()
    return moment.astimezone(tz).date()


def format_date_label(day: Optional[date], today: date) -> str:
    if day is None:
        return NO_DUE_DATE

    offset = (day - today).days
    if offset == 0:
        return "Today"
    if offset == 1:
        return "Tomorrow"
    if offset == -1:
        return "Yesterday"
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"


def group_todos_by_due_date(todos: Sequence[Any], now: Optional[datetime] = None) -> list[TodoGroup]:
    now = now or datetime.now().astimezone()
    tz = now.tzinfo
    today = now.date()

    with_due_date = [t for t in todos if t.due_date is not None]
    without_due_date = [t for t in todos if t.due_date is None]

    # sorted() is stable, so todos due at the same instant keep input order
    with_due_date = sorted(with_due_date, key=lambda t: _as_instant(t.due_date, tz))

    groups: list[TodoGroup] = []
    for todo in with_due_date:
        day = _calendar_day(todo.due_date, tz)
        if groups and groups[-1].date == day:
            groups[-1].todos.append(todo)
            continue
        groups.append(TodoGroup(
            date=day,
            label=format_date_label(day, today),
            todos=[todo],
            is_past=day < today,
        ))

    # "Today" is always rendered, even when empty
    if not any(g.date == today for g in groups):
        position = next(
            (i for i, g in enumerate(groups) if g.date > today),
            len(groups),
        )
        groups.insert(position, TodoGroup(date=today, label="Today"))

    if without_due_date:
        groups.append(TodoGroup(date=None, label=NO_DUE_DATE, todos=without_due_date))

    return groups
