"""
Todo API endpoints - team-scoped deadlines with single and bulk edits
"""
from datetime import date, datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from deadlines.api.deps import get_app_settings, get_dispatcher
from deadlines.config import Settings
from deadlines.core.grouping import group_todos_by_due_date
from deadlines.database import get_db
from deadlines.schemas import ActionResult, TodoCreate, TodoRead
from deadlines.services import actions
from deadlines.services.queue import TaskDispatcher

router = APIRouter()

GroupDate = Optional[date]


# --- Pydantic Schemas ---

class CompletedUpdate(BaseModel):
    completed: bool


class DueDateUpdate(BaseModel):
    due_date: Optional[datetime] = None


class ProjectUpdate(BaseModel):
    project_id: Optional[int] = None


class AssigneeUpdate(BaseModel):
    assigned_user_id: Optional[str] = None


class BulkIds(BaseModel):
    ids: List[int]


class BulkCompleted(BulkIds):
    completed: bool


class BulkDueDate(BulkIds):
    due_date: Optional[datetime] = None


class BulkProject(BulkIds):
    project_id: Optional[int] = None


class BulkAssignee(BulkIds):
    assigned_user_id: Optional[str] = None


class TodoGroupResponse(BaseModel):
    date: GroupDate
    label: str
    is_past: bool
    todos: List[TodoRead]


# --- Reads ---

@router.get("/", response_model=List[TodoRead])
async def list_todos(team_id: str, db: AsyncSession = Depends(get_db)):
    """List a team's todos in id order"""
    return await actions.list_todos(db, team_id)


@router.get("/grouped", response_model=List[TodoGroupResponse])
async def list_grouped_todos(
    team_id: str,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Todos bucketed by due date in the configured timezone"""
    todos = [TodoRead.model_validate(t) for t in await actions.list_todos(db, team_id)]
    now = datetime.now(ZoneInfo(settings.TIMEZONE))
    return [
        TodoGroupResponse(date=g.date, label=g.label, is_past=g.is_past, todos=g.todos)
        for g in group_todos_by_due_date(todos, now=now)
    ]


# --- Single-item actions ---

@router.post("/", response_model=ActionResult)
async def add_todo(
    team_id: str,
    data: TodoCreate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    return await actions.add_todo(db, team_id, data, todo_limit=settings.FREE_TODO_LIMIT)


@router.delete("/{todo_id}", response_model=ActionResult)
async def delete_todo(team_id: str, todo_id: int, db: AsyncSession = Depends(get_db)):
    return await actions.delete_todo(db, team_id, todo_id)


@router.put("/{todo_id}/completed", response_model=ActionResult)
async def toggle_todo(
    team_id: str, todo_id: int, data: CompletedUpdate, db: AsyncSession = Depends(get_db)
):
    return await actions.toggle_todo(db, team_id, todo_id, data.completed)


@router.put("/{todo_id}/due-date", response_model=ActionResult)
async def update_due_date(
    team_id: str, todo_id: int, data: DueDateUpdate, db: AsyncSession = Depends(get_db)
):
    return await actions.update_due_date(db, team_id, todo_id, data.due_date)


@router.put("/{todo_id}/project", response_model=ActionResult)
async def update_todo_project(
    team_id: str, todo_id: int, data: ProjectUpdate, db: AsyncSession = Depends(get_db)
):
    return await actions.update_todo_project(db, team_id, todo_id, data.project_id)


@router.put("/{todo_id}/assignee", response_model=ActionResult)
async def update_assigned_user(
    team_id: str, todo_id: int, data: AssigneeUpdate, db: AsyncSession = Depends(get_db)
):
    return await actions.update_assigned_user(db, team_id, todo_id, data.assigned_user_id)


# --- Bulk actions (queued) ---

@router.post("/bulk/delete", response_model=ActionResult)
async def bulk_delete(
    team_id: str, data: BulkIds, dispatcher: TaskDispatcher = Depends(get_dispatcher)
):
    return await actions.bulk_delete_todos(dispatcher, team_id, data.ids)


@router.post("/bulk/completed", response_model=ActionResult)
async def bulk_completed(
    team_id: str, data: BulkCompleted, dispatcher: TaskDispatcher = Depends(get_dispatcher)
):
    return await actions.bulk_toggle_completed(dispatcher, team_id, data.ids, data.completed)


@router.post("/bulk/due-date", response_model=ActionResult)
async def bulk_due_date(
    team_id: str, data: BulkDueDate, dispatcher: TaskDispatcher = Depends(get_dispatcher)
):
    return await actions.bulk_update_due_date(dispatcher, team_id, data.ids, data.due_date)


@router.post("/bulk/project", response_model=ActionResult)
async def bulk_project(
    team_id: str, data: BulkProject, dispatcher: TaskDispatcher = Depends(get_dispatcher)
):
    return await actions.bulk_update_project(dispatcher, team_id, data.ids, data.project_id)


@router.post("/bulk/assignee", response_model=ActionResult)
async def bulk_assignee(
    team_id: str, data: BulkAssignee, dispatcher: TaskDispatcher = Depends(get_dispatcher)
):
    return await actions.bulk_update_assigned_user(
        dispatcher, team_id, data.ids, data.assigned_user_id
    )
