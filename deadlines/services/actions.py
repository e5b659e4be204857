"""
Server actions - the user-facing operations behind the todo and project routes.

Single-item actions mutate storage directly through the processors. Bulk
actions wrap the intent in a queue task and return as soon as the broker has
accepted it. Every action answers with an ActionResult; storage and broker
failures are logged and reported, never raised to the caller.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from deadlines.config import DEFAULT_COLOR, DEFAULT_TODO_LIMIT
from deadlines.models.project import Project
from deadlines.models.todo import Todo
from deadlines.schemas import ActionResult, ProjectRead, TodoCreate, TodoRead, is_optimistic_id
from deadlines.services import processors
from deadlines.services.queue import TaskDispatcher
from deadlines.services.tasks import (
    DeleteTodosTask,
    ToggleCompletedTask,
    UpdateAssignedUserTask,
    UpdateDueDateTask,
    UpdateProjectTask,
)

logger = logging.getLogger(__name__)

PROJECT_NOT_FOUND = "Project not found"


# --- Reads ---

async def list_todos(db: AsyncSession, team_id: str) -> list[Todo]:
    result = await db.execute(
        select(Todo).where(Todo.team_id == team_id).order_by(Todo.id)
    )
    return list(result.scalars().all())


async def list_projects(db: AsyncSession, team_id: str) -> list[Project]:
    result = await db.execute(
        select(Project)
        .where(Project.team_id == team_id)
        .order_by(Project.created_at.desc(), Project.id.desc())
    )
    return list(result.scalars().all())


async def count_active_todos(db: AsyncSession, team_id: str) -> int:
    result = await db.execute(
        select(func.count(Todo.id)).where(Todo.team_id == team_id)
    )
    return result.scalar() or 0


# --- Single-item actions ---

async def add_todo(
    db: AsyncSession,
    team_id: str,
    data: TodoCreate,
    user_id: Optional[str] = None,
    todo_limit: int = DEFAULT_TODO_LIMIT,
) -> ActionResult:
    if not data.text or not data.text.strip():
        return ActionResult.failed("Todo text is required")

    try:
        if await count_active_todos(db, team_id) >= todo_limit:
            return ActionResult.failed(f"Todo limit of {todo_limit} reached")

        todo = Todo(
            text=data.text,
            due_date=data.due_date,
            project_id=data.project_id,
            assigned_user_id=data.assigned_user_id,
            team_id=team_id,
            user_id=user_id,
        )
        db.add(todo)
        await db.commit()
        await db.refresh(todo)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to add todo: {e}")
        return ActionResult.failed("Failed to add todo")

    return ActionResult.ok(todo=TodoRead.model_validate(todo))


async def _single(db: AsyncSession, action: str, todo_id: int, coro_factory) -> ActionResult:
    # Optimistic todos have never reached the server
    if is_optimistic_id(todo_id):
        return ActionResult.failed()

    try:
        await coro_factory()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to {action}: {e}")
        return ActionResult.failed(f"Failed to {action}")
    return ActionResult.ok()


async def delete_todo(db: AsyncSession, team_id: str, todo_id: int) -> ActionResult:
    return await _single(
        db, "delete todo", todo_id,
        lambda: processors.delete_todos(db, team_id, [todo_id]),
    )


async def toggle_todo(db: AsyncSession, team_id: str, todo_id: int, completed: bool) -> ActionResult:
    return await _single(
        db, "update todo", todo_id,
        lambda: processors.set_completed(db, team_id, [todo_id], completed),
    )


async def update_due_date(
    db: AsyncSession, team_id: str, todo_id: int, due_date: Optional[datetime]
) -> ActionResult:
    return await _single(
        db, "update todo due date", todo_id,
        lambda: processors.set_due_date(db, team_id, [todo_id], due_date),
    )


async def update_todo_project(
    db: AsyncSession, team_id: str, todo_id: int, project_id: Optional[int]
) -> ActionResult:
    return await _single(
        db, "update todo project", todo_id,
        lambda: processors.set_project(db, team_id, [todo_id], project_id),
    )


async def update_assigned_user(
    db: AsyncSession, team_id: str, todo_id: int, user_id: Optional[str]
) -> ActionResult:
    return await _single(
        db, "update assigned user", todo_id,
        lambda: processors.set_assigned_user(db, team_id, [todo_id], user_id),
    )


# --- Bulk actions ---

async def _bulk(dispatcher: TaskDispatcher, task, error: str) -> ActionResult:
    result = await dispatcher.publish(task)
    if result.error:
        return ActionResult.failed(error)
    if not result.submitted:
        return ActionResult.failed()
    return ActionResult.ok(job_id=result.job_id)


async def bulk_delete_todos(dispatcher: TaskDispatcher, team_id: str, ids: list[int]) -> ActionResult:
    return await _bulk(
        dispatcher,
        DeleteTodosTask(team_id=team_id, ids=ids),
        "Failed to delete todos",
    )


async def bulk_toggle_completed(
    dispatcher: TaskDispatcher, team_id: str, ids: list[int], completed: bool
) -> ActionResult:
    return await _bulk(
        dispatcher,
        ToggleCompletedTask(team_id=team_id, ids=ids, completed=completed),
        f"Failed to mark todos as {'completed' if completed else 'incomplete'}",
    )


async def bulk_update_due_date(
    dispatcher: TaskDispatcher, team_id: str, ids: list[int], due_date: Optional[datetime]
) -> ActionResult:
    return await _bulk(
        dispatcher,
        UpdateDueDateTask(team_id=team_id, ids=ids, due_date=due_date),
        "Failed to update due dates",
    )


async def bulk_update_project(
    dispatcher: TaskDispatcher, team_id: str, ids: list[int], project_id: Optional[int]
) -> ActionResult:
    return await _bulk(
        dispatcher,
        UpdateProjectTask(team_id=team_id, ids=ids, project_id=project_id),
        "Failed to move todos to project",
    )


async def bulk_update_assigned_user(
    dispatcher: TaskDispatcher, team_id: str, ids: list[int], user_id: Optional[str]
) -> ActionResult:
    return await _bulk(
        dispatcher,
        UpdateAssignedUserTask(team_id=team_id, ids=ids, assigned_user_id=user_id),
        "Failed to assign todos to user",
    )


# --- Projects ---

async def add_project(
    db: AsyncSession,
    team_id: str,
    name: Optional[str],
    color: Optional[str] = None,
    default_color: str = DEFAULT_COLOR,
) -> ActionResult:
    if not name or not name.strip():
        return ActionResult.failed("Project name is required")

    project = Project(
        name=name.strip(),
        color=color or default_color,
        team_id=team_id,
    )
    try:
        db.add(project)
        await db.commit()
        await db.refresh(project)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to add project: {e}")
        return ActionResult.failed("Failed to add project")

    return ActionResult.ok(project=ProjectRead.model_validate(project))


async def delete_project(db: AsyncSession, team_id: str, project_id: int) -> ActionResult:
    """Detach every todo from the project, then remove it, in one transaction"""
    try:
        project = await db.scalar(
            select(Project).where(Project.id == project_id, Project.team_id == team_id)
        )
        if project is None:
            return ActionResult.failed(PROJECT_NOT_FOUND)

        await db.execute(
            update(Todo)
            .where(Todo.team_id == team_id, Todo.project_id == project_id)
            .values(project_id=None)
        )
        await db.delete(project)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to delete project: {e}")
        return ActionResult.failed("Failed to delete project")

    return ActionResult.ok()
