"""
Projects API endpoints - team-scoped labels for todos
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from deadlines.api.deps import get_app_settings
from deadlines.config import Settings
from deadlines.database import get_db
from deadlines.schemas import ActionResult, ProjectCreate, ProjectRead
from deadlines.services import actions

router = APIRouter()


@router.get("/", response_model=List[ProjectRead])
async def list_projects(team_id: str, db: AsyncSession = Depends(get_db)):
    """List a team's projects, newest first"""
    return await actions.list_projects(db, team_id)


@router.post("/", response_model=ActionResult)
async def add_project(
    team_id: str,
    data: ProjectCreate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    return await actions.add_project(
        db, team_id, data.name, data.color, default_color=settings.DEFAULT_PROJECT_COLOR
    )


@router.delete("/{project_id}", response_model=ActionResult)
async def delete_project(team_id: str, project_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a project; its todos stay, with no project"""
    result = await actions.delete_project(db, team_id, project_id)
    if result.error == actions.PROJECT_NOT_FOUND:
        raise HTTPException(status_code=404, detail=actions.PROJECT_NOT_FOUND)
    return result
