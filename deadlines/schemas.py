"""
Pydantic schemas shared by the API, the HTTP client and the reconciler
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


def is_optimistic_id(todo_id: int) -> bool:
    """Client-only ids are zero or negative; the server never issues them."""
    return todo_id <= 0


def confirmed_ids(ids) -> list[int]:
    """Drop client-only ids, keeping submission order"""
    return [i for i in ids if not is_optimistic_id(i)]


# --- Todos ---

class TodoRead(BaseModel):
    id: int
    text: str
    completed: bool = False
    due_date: Optional[datetime] = None
    project_id: Optional[int] = None
    team_id: str
    assigned_user_id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TodoCreate(BaseModel):
    text: str
    due_date: Optional[datetime] = None
    project_id: Optional[int] = None
    assigned_user_id: Optional[str] = None


# --- Projects ---

class ProjectRead(BaseModel):
    id: int
    name: str
    color: str
    team_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProjectCreate(BaseModel):
    name: str
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")


# --- Action results ---

class ActionResult(BaseModel):
    """Structured outcome of a user action; failures carry a message instead of raising"""

    success: bool
    error: Optional[str] = None
    job_id: Optional[str] = None
    todo: Optional[TodoRead] = None
    project: Optional[ProjectRead] = None

    @classmethod
    def ok(cls, **kwargs) -> "ActionResult":
        return cls(success=True, **kwargs)

    @classmethod
    def failed(cls, error: Optional[str] = None) -> "ActionResult":
        return cls(success=False, error=error)
