"""
Optimistic todo state for one open session.

Every user action updates local state synchronously and then hands the real
request to ``spawn`` without awaiting it, so the next read of
``displayed_todos`` already reflects the action. Server truth arrives later as
a whole snapshot via ``receive_snapshot``; the edit log is kept and replayed
on top of it, since set-style edits are harmless to reapply once they have
landed.

Failed requests are not rolled back. The overlay stays until the next
snapshot, which retires it.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, Optional

from deadlines.core.edits import (
    AssignUserEdit,
    DeleteEdit,
    MoveToProjectEdit,
    PendingEdit,
    RescheduleEdit,
    ToggleCompletedEdit,
    apply_pending_edits,
    is_redundant,
)
from deadlines.core.grouping import TodoGroup, group_todos_by_due_date
from deadlines.schemas import ActionResult, TodoCreate, TodoRead, is_optimistic_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Capacity:
    total: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(self.limit - self.total, 0)

    @property
    def at_capacity(self) -> bool:
        return self.total >= self.limit


@dataclass
class _Tracked:
    """A local change plus what we know about its request"""

    settled: bool = False
    succeeded: bool = False
    snapshots_seen: int = 0

    def settle(self, result: ActionResult):
        self.settled = True
        self.succeeded = result.success


@dataclass
class _LoggedEdit(_Tracked):
    edit: Optional[PendingEdit] = None


@dataclass
class _OptimisticAdd(_Tracked):
    todo: Optional[TodoRead] = None


class TodoReconciler:
    def __init__(
        self,
        team_id: str,
        client,
        todos: Iterable[TodoRead] = (),
        *,
        todo_limit: int = 10,
        spawn: Optional[Callable[[Awaitable], object]] = None,
        stale_after: int = 5,
    ):
        self.team_id = team_id
        self.client = client
        self.todo_limit = todo_limit
        self.stale_after = stale_after

        self._base: list[TodoRead] = list(todos)
        self._log: list[_LoggedEdit] = []
        self._adds: list[_OptimisticAdd] = []
        self._deletes: dict[int, _Tracked] = {}
        self._selection: set[int] = set()
        self._next_optimistic_id = -1

        self._spawn = spawn or self._spawn_task
        self._tasks: set[asyncio.Task] = set()

    # --- Views ---

    @property
    def base_todos(self) -> list[TodoRead]:
        return list(self._base)

    @property
    def pending_edits(self) -> tuple:
        return tuple(entry.edit for entry in self._log)

    @property
    def selection(self) -> frozenset:
        return frozenset(self._selection)

    @property
    def displayed_todos(self) -> list[TodoRead]:
        base = [t for t in self._base if t.id not in self._deletes]
        base.extend(add.todo for add in self._adds)
        return apply_pending_edits(base, self.pending_edits)

    def search(self, query: str) -> list[TodoRead]:
        needle = query.lower()
        return [t for t in self.displayed_todos if needle in t.text.lower()]

    def grouped(self, query: str = "", now: Optional[datetime] = None) -> list[TodoGroup]:
        return group_todos_by_due_date(self.search(query), now=now)

    @property
    def capacity(self) -> Capacity:
        return Capacity(total=len(self.displayed_todos), limit=self.todo_limit)

    @property
    def selected_todos(self) -> list[TodoRead]:
        return [t for t in self.displayed_todos if t.id in self._selection]

    @property
    def all_selected(self) -> bool:
        displayed = self.displayed_todos
        return bool(displayed) and all(t.id in self._selection for t in displayed)

    # --- Selection ---

    def select(self, todo_id: int) -> bool:
        """Add a todo to the bulk selection; client-only todos cannot be selected"""
        if is_optimistic_id(todo_id):
            return False
        if not any(t.id == todo_id for t in self.displayed_todos):
            return False
        self._selection.add(todo_id)
        return True

    def deselect(self, todo_id: int):
        self._selection.discard(todo_id)

    def select_all(self, todos: Optional[Iterable[TodoRead]] = None):
        """Select every visible todo (or the given subset, e.g. search results)"""
        visible = self.displayed_todos if todos is None else todos
        self._selection.update(t.id for t in visible if not is_optimistic_id(t.id))

    def clear_selection(self):
        self._selection.clear()

    # --- Single-item actions ---

    def add_todo(
        self,
        text: str,
        due_date: Optional[datetime] = None,
        project_id: Optional[int] = None,
        assigned_user_id: Optional[str] = None,
    ) -> Optional[TodoRead]:
        if not text or not text.strip() or self.capacity.at_capacity:
            return None

        now = datetime.now(timezone.utc)
        todo = TodoRead(
            id=self._next_optimistic_id,
            text=text,
            completed=False,
            due_date=due_date,
            project_id=project_id,
            team_id=self.team_id,
            assigned_user_id=assigned_user_id,
            created_at=now,
            updated_at=now,
        )
        self._next_optimistic_id -= 1

        entry = _OptimisticAdd(todo=todo)
        self._adds.append(entry)
        data = TodoCreate(
            text=text, due_date=due_date, project_id=project_id, assigned_user_id=assigned_user_id
        )
        self._fire(self.client.add_todo(self.team_id, data), entry)
        return todo

    def delete_todo(self, todo_id: int):
        self._selection.discard(todo_id)

        if is_optimistic_id(todo_id):
            self._adds = [a for a in self._adds if a.todo.id != todo_id]
            return

        entry = _Tracked()
        self._deletes[todo_id] = entry
        self._fire(self.client.delete_todo(self.team_id, todo_id), entry)

    def toggle_todo(self, todo_id: int, completed: bool):
        self._edit_one(
            ToggleCompletedEdit(ids={todo_id}, completed=completed),
            lambda: self.client.toggle_todo(self.team_id, todo_id, completed),
        )

    def reschedule_todo(self, todo_id: int, due_date: Optional[datetime]):
        self._edit_one(
            RescheduleEdit(ids={todo_id}, due_date=due_date),
            lambda: self.client.update_due_date(self.team_id, todo_id, due_date),
        )

    def move_todo_to_project(self, todo_id: int, project_id: Optional[int]):
        self._edit_one(
            MoveToProjectEdit(ids={todo_id}, project_id=project_id),
            lambda: self.client.update_todo_project(self.team_id, todo_id, project_id),
        )

    def assign_todo(self, todo_id: int, user_id: Optional[str]):
        self._edit_one(
            AssignUserEdit(ids={todo_id}, assigned_user_id=user_id),
            lambda: self.client.update_assigned_user(self.team_id, todo_id, user_id),
        )

    # --- Bulk actions over the selection ---

    def delete_selected(self) -> Optional[PendingEdit]:
        ids = self._confirmed_selection()
        if not ids:
            return None
        edit = DeleteEdit(ids=ids)
        self._selection.clear()
        self._log_and_fire(edit, self.client.bulk_delete_todos(self.team_id, ids))
        return edit

    def reschedule_selected(self, due_date: Optional[datetime]) -> Optional[PendingEdit]:
        ids = self._confirmed_selection()
        if not ids:
            return None
        edit = RescheduleEdit(ids=ids, due_date=due_date)
        self._log_and_fire(edit, self.client.bulk_update_due_date(self.team_id, ids, due_date))
        return edit

    def move_selected_to_project(self, project_id: Optional[int]) -> Optional[PendingEdit]:
        ids = self._confirmed_selection()
        if not ids:
            return None
        edit = MoveToProjectEdit(ids=ids, project_id=project_id)
        self._log_and_fire(edit, self.client.bulk_update_project(self.team_id, ids, project_id))
        return edit

    def mark_selected(self, completed: bool) -> Optional[PendingEdit]:
        ids = self._confirmed_selection()
        if not ids:
            return None
        edit = ToggleCompletedEdit(ids=ids, completed=completed)
        self._log_and_fire(edit, self.client.bulk_toggle_completed(self.team_id, ids, completed))
        return edit

    def assign_selected(self, user_id: Optional[str]) -> Optional[PendingEdit]:
        ids = self._confirmed_selection()
        if not ids:
            return None
        edit = AssignUserEdit(ids=ids, assigned_user_id=user_id)
        self._log_and_fire(edit, self.client.bulk_update_assigned_user(self.team_id, ids, user_id))
        return edit

    # --- Server truth ---

    def receive_snapshot(self, todos: Iterable[TodoRead]):
        """Replace the base snapshot; keep and replay whatever is still pending"""
        self._base = list(todos)
        by_id = {t.id: t for t in self._base}

        # Settled adds and deletes are dropped even if the snapshot predates
        # them; the next snapshot shows the stored row.
        self._adds = [a for a in self._adds if not a.settled]
        self._deletes = {i: d for i, d in self._deletes.items() if not d.settled}
        self._compact_log(by_id)

        visible = {t.id for t in self.displayed_todos}
        self._selection &= visible

    async def refresh(self) -> list[TodoRead]:
        self.receive_snapshot(await self.client.fetch_todos(self.team_id))
        return self.displayed_todos

    # --- Internals ---

    def _compact_log(self, by_id: dict):
        # Only the head of the log is compacted: an edit with nothing before
        # it can be judged against the snapshot alone.
        for entry in self._log:
            if entry.settled:
                entry.snapshots_seen += 1

        while self._log:
            head = self._log[0]
            if not head.settled:
                break
            if head.succeeded and not is_redundant(head.edit, by_id) and head.snapshots_seen < self.stale_after:
                break
            self._log.pop(0)

    def _confirmed_selection(self) -> list[int]:
        return sorted(i for i in self._selection if not is_optimistic_id(i))

    def _edit_one(self, edit: PendingEdit, request: Callable[[], Awaitable[ActionResult]]):
        (todo_id,) = edit.ids
        entry = _LoggedEdit(edit=edit)
        self._log.append(entry)
        if is_optimistic_id(todo_id):
            # Never sent; retired with the next snapshot
            entry.settle(ActionResult.failed())
            return
        self._fire(request(), entry)

    def _log_and_fire(self, edit: PendingEdit, request: Awaitable[ActionResult]):
        entry = _LoggedEdit(edit=edit)
        self._log.append(entry)
        self._fire(request, entry)

    def _fire(self, request: Awaitable[ActionResult], entry: _Tracked):
        self._spawn(self._settle(request, entry))

    async def _settle(self, request: Awaitable[ActionResult], entry: _Tracked):
        try:
            result = await request
        except Exception as e:
            result = ActionResult.failed(f"Request failed: {e!r}")
        if not result.success and result.error:
            logger.warning(f"Background mutation failed: {result.error}")
        entry.settle(result)
        return result

    def _spawn_task(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
