"""
Queue task payloads - one variant per bulk mutation, plus the dedup key
that collapses identical submissions into a single queued job.
"""
import re
from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from deadlines.exceptions import UnknownTaskError

_NO_VALUE = object()


def _kebab(task_type: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "-", task_type).lower()


def _value_token(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def dedup_key(task_type: str, ids, value: Any = _NO_VALUE) -> str:
    """
    Deterministic dedup key: kebab-cased type, ids sorted lexicographically,
    then the value being set (omitted for deletes).

    >>> dedup_key("updateProject", [12, 3], 7)
    'update-project-12-3-7'
    """
    parts = [_kebab(task_type)]
    parts.extend(sorted({str(i) for i in ids}))
    if value is not _NO_VALUE:
        parts.append(_value_token(value))
    return "-".join(parts)


class _TeamTask(BaseModel):
    team_id: str
    ids: list[int]
    key: Optional[str] = None

    def value(self) -> Any:
        return _NO_VALUE

    def dedup_key(self) -> str:
        return dedup_key(self.type, self.ids, self.value())

    def with_ids(self, ids: list[int]):
        return self.model_copy(update={"ids": list(ids)})


class DeleteTodosTask(_TeamTask):
    type: Literal["deleteTodos"] = "deleteTodos"


class ToggleCompletedTask(_TeamTask):
    type: Literal["toggleCompleted"] = "toggleCompleted"
    completed: bool

    def value(self) -> Any:
        return self.completed


class UpdateDueDateTask(_TeamTask):
    type: Literal["updateDueDate"] = "updateDueDate"
    due_date: Optional[datetime] = None

    def value(self) -> Any:
        return self.due_date


class UpdateProjectTask(_TeamTask):
    type: Literal["updateProject"] = "updateProject"
    project_id: Optional[int] = None

    def value(self) -> Any:
        return self.project_id


class UpdateAssignedUserTask(_TeamTask):
    type: Literal["updateAssignedUser"] = "updateAssignedUser"
    assigned_user_id: Optional[str] = None

    def value(self) -> Any:
        return self.assigned_user_id


QueueTask = Annotated[
    Union[
        DeleteTodosTask,
        ToggleCompletedTask,
        UpdateDueDateTask,
        UpdateProjectTask,
        UpdateAssignedUserTask,
    ],
    Field(discriminator="type"),
]

TASK_TYPES = frozenset({
    "deleteTodos",
    "toggleCompleted",
    "updateDueDate",
    "updateProject",
    "updateAssignedUser",
})

_task_adapter = TypeAdapter(QueueTask)


def parse_task(payload: Any) -> QueueTask:
    """Validate a delivered JSON object into its task variant"""
    task_type = payload.get("type") if isinstance(payload, dict) else None
    if not isinstance(task_type, str) or task_type not in TASK_TYPES:
        raise UnknownTaskError(task_type)
    return _task_adapter.validate_python(payload)


def task_payload(task) -> dict:
    """Wire body for the broker: ``{type, key, team_id, ids, ...value}``"""
    body = task.model_dump(mode="json")
    body["key"] = task.dedup_key()
    return body
