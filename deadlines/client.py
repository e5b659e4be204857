"""
HTTP client for the todo API, used by the reconciler to fire mutations
"""
import logging
from datetime import datetime
from typing import Optional

import httpx

from deadlines.schemas import ActionResult, ProjectRead, TodoCreate, TodoRead

logger = logging.getLogger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class TodoApiClient:
    def __init__(self, http: httpx.AsyncClient):
        self._http = http

    @classmethod
    def connect(cls, base_url: str, **kwargs) -> "TodoApiClient":
        return cls(httpx.AsyncClient(base_url=base_url, **kwargs))

    async def aclose(self):
        await self._http.aclose()

    async def _action(self, method: str, url: str, json: Optional[dict] = None) -> ActionResult:
        try:
            response = await self._http.request(method, url, json=json)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            return ActionResult.failed(f"Request failed: {e}")
        return ActionResult.model_validate(response.json())

    # --- Reads ---

    async def fetch_todos(self, team_id: str) -> list[TodoRead]:
        response = await self._http.get(f"/api/teams/{team_id}/todos/")
        response.raise_for_status()
        return [TodoRead.model_validate(item) for item in response.json()]

    async def fetch_projects(self, team_id: str) -> list[ProjectRead]:
        response = await self._http.get(f"/api/teams/{team_id}/projects/")
        response.raise_for_status()
        return [ProjectRead.model_validate(item) for item in response.json()]

    # --- Single-item actions ---

    async def add_todo(self, team_id: str, data: TodoCreate) -> ActionResult:
        return await self._action("POST", f"/api/teams/{team_id}/todos/", data.model_dump(mode="json"))

    async def delete_todo(self, team_id: str, todo_id: int) -> ActionResult:
        return await self._action("DELETE", f"/api/teams/{team_id}/todos/{todo_id}")

    async def toggle_todo(self, team_id: str, todo_id: int, completed: bool) -> ActionResult:
        return await self._action(
            "PUT", f"/api/teams/{team_id}/todos/{todo_id}/completed", {"completed": completed}
        )

    async def update_due_date(self, team_id: str, todo_id: int, due_date: Optional[datetime]) -> ActionResult:
        return await self._action(
            "PUT", f"/api/teams/{team_id}/todos/{todo_id}/due-date", {"due_date": _iso(due_date)}
        )

    async def update_todo_project(self, team_id: str, todo_id: int, project_id: Optional[int]) -> ActionResult:
        return await self._action(
            "PUT", f"/api/teams/{team_id}/todos/{todo_id}/project", {"project_id": project_id}
        )

    async def update_assigned_user(self, team_id: str, todo_id: int, user_id: Optional[str]) -> ActionResult:
        return await self._action(
            "PUT", f"/api/teams/{team_id}/todos/{todo_id}/assignee", {"assigned_user_id": user_id}
        )

    # --- Bulk actions ---

    async def bulk_delete_todos(self, team_id: str, ids: list[int]) -> ActionResult:
        return await self._action("POST", f"/api/teams/{team_id}/todos/bulk/delete", {"ids": ids})

    async def bulk_toggle_completed(self, team_id: str, ids: list[int], completed: bool) -> ActionResult:
        return await self._action(
            "POST", f"/api/teams/{team_id}/todos/bulk/completed", {"ids": ids, "completed": completed}
        )

    async def bulk_update_due_date(self, team_id: str, ids: list[int], due_date: Optional[datetime]) -> ActionResult:
        return await self._action(
            "POST", f"/api/teams/{team_id}/todos/bulk/due-date", {"ids": ids, "due_date": _iso(due_date)}
        )

    async def bulk_update_project(self, team_id: str, ids: list[int], project_id: Optional[int]) -> ActionResult:
        return await self._action(
            "POST", f"/api/teams/{team_id}/todos/bulk/project", {"ids": ids, "project_id": project_id}
        )

    async def bulk_update_assigned_user(self, team_id: str, ids: list[int], user_id: Optional[str]) -> ActionResult:
        return await self._action(
            "POST", f"/api/teams/{team_id}/todos/bulk/assignee", {"ids": ids, "assigned_user_id": user_id}
        )

    # --- Projects ---

    async def add_project(self, team_id: str, name: str, color: Optional[str] = None) -> ActionResult:
        return await self._action("POST", f"/api/teams/{team_id}/projects/", {"name": name, "color": color})

    async def delete_project(self, team_id: str, project_id: int) -> ActionResult:
        return await self._action("DELETE", f"/api/teams/{team_id}/projects/{project_id}")
