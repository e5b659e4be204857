"""
Mutation processors - apply one batch mutation to a team's todos.

Every processor is a plain "set" (never an increment), so applying the same
(ids, value) twice leaves the same state as applying it once. Ids that no
longer exist are ignored: a queued job can arrive after the todo was deleted.
"""
import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from deadlines.models.base import utc_now
from deadlines.models.todo import Todo
from deadlines.schemas import confirmed_ids

logger = logging.getLogger(__name__)


async def _update_todos(db: AsyncSession, team_id: str, ids: Iterable[int], values: dict) -> int:
    valid_ids = confirmed_ids(ids)
    if not valid_ids:
        return 0

    result = await db.execute(
        update(Todo)
        .where(Todo.team_id == team_id, Todo.id.in_(valid_ids))
        .values(**values, updated_at=utc_now())
    )
    await db.commit()
    logger.debug(f"Updated {result.rowcount} todos in team {team_id}: {sorted(values)}")
    return result.rowcount


async def delete_todos(db: AsyncSession, team_id: str, ids: Iterable[int]) -> int:
    valid_ids = confirmed_ids(ids)
    if not valid_ids:
        return 0

    result = await db.execute(
        delete(Todo)
        .where(Todo.team_id == team_id, Todo.id.in_(valid_ids))
    )
    await db.commit()
    logger.debug(f"Deleted {result.rowcount} todos in team {team_id}")
    return result.rowcount


async def set_completed(db: AsyncSession, team_id: str, ids: Iterable[int], completed: bool) -> int:
    return await _update_todos(db, team_id, ids, {"completed": completed})


async def set_due_date(
    db: AsyncSession, team_id: str, ids: Iterable[int], due_date: Optional[datetime]
) -> int:
    return await _update_todos(db, team_id, ids, {"due_date": due_date})


async def set_project(
    db: AsyncSession, team_id: str, ids: Iterable[int], project_id: Optional[int]
) -> int:
    return await _update_todos(db, team_id, ids, {"project_id": project_id})


async def set_assigned_user(
    db: AsyncSession, team_id: str, ids: Iterable[int], user_id: Optional[str]
) -> int:
    return await _update_todos(db, team_id, ids, {"assigned_user_id": user_id})
