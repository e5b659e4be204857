"""
Pending edits - unconfirmed local mutations laid over the last server snapshot.

The displayed list is a fold: every todo is run through the edit log in
submission order. Edits of different kinds stack (a reschedule and a project
move both show); of two edits of the same kind the later one wins; a delete
ends the fold for that todo.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping, Optional, Sequence, Union

from deadlines.schemas import TodoRead


@dataclass(frozen=True)
class _Edit:
    ids: frozenset

    def __post_init__(self):
        object.__setattr__(self, "ids", frozenset(self.ids))


@dataclass(frozen=True)
class DeleteEdit(_Edit):
    pass


@dataclass(frozen=True)
class RescheduleEdit(_Edit):
    due_date: Optional[datetime]


@dataclass(frozen=True)
class MoveToProjectEdit(_Edit):
    project_id: Optional[int]


@dataclass(frozen=True)
class ToggleCompletedEdit(_Edit):
    completed: bool


@dataclass(frozen=True)
class AssignUserEdit(_Edit):
    assigned_user_id: Optional[str]


PendingEdit = Union[DeleteEdit, RescheduleEdit, MoveToProjectEdit, ToggleCompletedEdit, AssignUserEdit]


def _changes(edit: PendingEdit) -> dict:
    if isinstance(edit, RescheduleEdit):
        return {"due_date": edit.due_date}
    if isinstance(edit, MoveToProjectEdit):
        return {"project_id": edit.project_id}
    if isinstance(edit, ToggleCompletedEdit):
        return {"completed": edit.completed}
    if isinstance(edit, AssignUserEdit):
        return {"assigned_user_id": edit.assigned_user_id}
    raise TypeError(f"Unknown pending edit: {edit!r}")


def apply_edit(todo: TodoRead, edit: PendingEdit) -> Optional[TodoRead]:
    """Apply one edit to one todo; None means the todo is gone"""
    if isinstance(edit, DeleteEdit):
        return None
    return todo.model_copy(update=_changes(edit))


def apply_pending_edits(base: Iterable[TodoRead], edits: Sequence[PendingEdit]) -> list[TodoRead]:
    displayed = []
    for todo in base:
        current = todo
        for edit in edits:
            if todo.id not in edit.ids:
                continue
            current = apply_edit(current, edit)
            if current is None:
                break
        if current is not None:
            displayed.append(current)
    return displayed


def is_redundant(edit: PendingEdit, todos_by_id: Mapping[int, TodoRead]) -> bool:
    """True when applying the edit to this snapshot would change nothing"""
    present = [todos_by_id[i] for i in edit.ids if i in todos_by_id]
    if isinstance(edit, DeleteEdit):
        return not present
    changes = _changes(edit)
    return all(
        getattr(todo, field) == value
        for todo in present
        for field, value in changes.items()
    )
