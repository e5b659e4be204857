"""
Queue task, dedup key and dispatcher tests
"""
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError
from sqlalchemy import select

from deadlines.exceptions import UnknownTaskError
from deadlines.models import Todo
from deadlines.services.tasks import (
    DeleteTodosTask,
    ToggleCompletedTask,
    UpdateAssignedUserTask,
    UpdateDueDateTask,
    UpdateProjectTask,
    dedup_key,
    parse_task,
    task_payload,
)

from conftest import TEAM


# ===================== DEDUP KEYS =====================


class TestDedupKey:
    def test_ids_sorted_as_strings(self):
        assert dedup_key("updateProject", [3, 12], 7) == "update-project-12-3-7"

    def test_order_and_duplicates_do_not_matter(self):
        assert dedup_key("deleteTodos", [2, 1, 2]) == dedup_key("deleteTodos", [1, 2])

    def test_delete_has_no_value_segment(self):
        assert DeleteTodosTask(team_id=TEAM, ids=[5, 4]).dedup_key() == "delete-todos-4-5"

    def test_value_tokens(self):
        assert ToggleCompletedTask(team_id=TEAM, ids=[1], completed=True).dedup_key() == "toggle-completed-1-true"
        assert UpdateProjectTask(team_id=TEAM, ids=[1], project_id=None).dedup_key() == "update-project-1-null"
        assert (
            UpdateAssignedUserTask(team_id=TEAM, ids=[1], assigned_user_id="user_ada").dedup_key()
            == "update-assigned-user-1-user_ada"
        )

    def test_due_date_uses_iso_format(self):
        due = datetime(2026, 5, 13, 9, 0, tzinfo=timezone.utc)
        task = UpdateDueDateTask(team_id=TEAM, ids=[2], due_date=due)
        assert task.dedup_key() == "update-due-date-2-2026-05-13T09:00:00+00:00"

    def test_different_values_give_different_keys(self):
        done = ToggleCompletedTask(team_id=TEAM, ids=[1, 2], completed=True)
        undone = ToggleCompletedTask(team_id=TEAM, ids=[1, 2], completed=False)
        assert done.dedup_key() != undone.dedup_key()


# ===================== PARSING =====================


class TestParseTask:
    def test_round_trips_payload(self):
        task = UpdateProjectTask(team_id=TEAM, ids=[1, 2], project_id=4)
        parsed = parse_task(task_payload(task))

        assert isinstance(parsed, UpdateProjectTask)
        assert parsed.ids == [1, 2]
        assert parsed.key == "update-project-1-2-4"

    def test_unknown_type(self):
        with pytest.raises(UnknownTaskError) as exc:
            parse_task({"type": "archiveTodos", "team_id": TEAM, "ids": [1]})
        assert str(exc.value) == "Unknown task type: archiveTodos"

    def test_not_an_object(self):
        with pytest.raises(UnknownTaskError):
            parse_task(["deleteTodos"])

    @pytest.mark.parametrize("task_type", [["deleteTodos"], {"name": "deleteTodos"}, None, 7])
    def test_non_string_type(self, task_type):
        with pytest.raises(UnknownTaskError):
            parse_task({"type": task_type, "team_id": TEAM, "ids": [1]})

    def test_missing_fields(self):
        with pytest.raises(ValidationError):
            parse_task({"type": "toggleCompleted", "team_id": TEAM, "ids": [1]})


# ===================== PUBLISH =====================


async def test_publish_with_no_ids_sends_nothing(dispatcher, broker):
    result = await dispatcher.publish(DeleteTodosTask(team_id=TEAM, ids=[]))

    assert result.submitted is False
    assert result.error is None
    assert broker.requests == []


async def test_publish_drops_optimistic_ids(dispatcher, broker):
    result = await dispatcher.publish(DeleteTodosTask(team_id=TEAM, ids=[-1, 0]))
    assert result.submitted is False
    assert broker.requests == []

    result = await dispatcher.publish(ToggleCompletedTask(team_id=TEAM, ids=[-2, 7, 3], completed=True))

    assert result.submitted is True
    assert broker.bodies[0]["ids"] == [7, 3]
    assert result.key == "toggle-completed-3-7-true"


async def test_publish_request_shape(dispatcher, broker):
    result = await dispatcher.publish(UpdateProjectTask(team_id=TEAM, ids=[3, 12], project_id=7))

    assert result.submitted is True
    assert result.job_id == "msg_1"

    request = broker.requests[0]
    assert request.method == "POST"
    assert request.url.path.startswith("/v2/publish/")
    assert request.url.path.endswith("deadlines.test/api/queue")
    assert request.headers["Authorization"] == "Bearer test-token"
    assert request.headers["Upstash-Deduplication-Id"] == "update-project-12-3-7"
    assert "Upstash-Forward-x-vercel-protection-bypass" not in request.headers
    assert broker.bodies[0] == {
        "type": "updateProject",
        "key": "update-project-12-3-7",
        "team_id": TEAM,
        "ids": [3, 12],
        "project_id": 7,
    }


async def test_identical_publishes_share_a_job(dispatcher, broker):
    first = await dispatcher.publish(DeleteTodosTask(team_id=TEAM, ids=[1, 2]))
    second = await dispatcher.publish(DeleteTodosTask(team_id=TEAM, ids=[2, 1]))
    other = await dispatcher.publish(DeleteTodosTask(team_id=TEAM, ids=[1]))

    assert first.job_id == second.job_id
    assert other.job_id != first.job_id


async def test_publish_forwards_bypass_secret(dispatcher, broker):
    dispatcher.queue.bypass_secret = "preview-secret"

    await dispatcher.publish(DeleteTodosTask(team_id=TEAM, ids=[1]))

    assert broker.requests[0].headers["Upstash-Forward-x-vercel-protection-bypass"] == "preview-secret"


async def test_publish_broker_failure(dispatcher, broker):
    broker.fail = True

    result = await dispatcher.publish(DeleteTodosTask(team_id=TEAM, ids=[1]))

    assert result.submitted is False
    assert result.error == "Failed to publish deleteTodos task"


# ===================== DELIVER =====================


async def test_deliver_runs_matching_processor(dispatcher, db_session, seed_data):
    ids = [t.id for t in seed_data["todos"]]
    due = datetime(2026, 6, 1, tzinfo=timezone.utc)

    tasks = [
        ToggleCompletedTask(team_id=TEAM, ids=ids, completed=True),
        UpdateDueDateTask(team_id=TEAM, ids=ids[:1], due_date=due),
        UpdateProjectTask(team_id=TEAM, ids=ids, project_id=None),
        UpdateAssignedUserTask(team_id=TEAM, ids=ids[1:], assigned_user_id="user_ada"),
    ]
    for task in tasks:
        result = await dispatcher.deliver(task, db_session)
        assert result.success is True

    rows = (await db_session.execute(
        select(Todo.id, Todo.completed, Todo.due_date, Todo.project_id, Todo.assigned_user_id)
        .where(Todo.team_id == TEAM)
        .order_by(Todo.id)
    )).all()
    assert all(row.completed for row in rows)
    assert rows[0].due_date is not None
    assert rows[1].due_date is None
    assert all(row.project_id is None for row in rows)
    assert [row.assigned_user_id for row in rows] == [None, "user_ada", "user_ada"]


async def test_deliver_delete_reports_affected(dispatcher, db_session, seed_data):
    ids = [t.id for t in seed_data["todos"][:2]]

    result = await dispatcher.deliver(DeleteTodosTask(team_id=TEAM, ids=ids), db_session)

    assert result.success is True
    assert result.affected == 2


async def test_deliver_is_idempotent(dispatcher, db_session, seed_data):
    task = DeleteTodosTask(team_id=TEAM, ids=[seed_data["todos"][0].id])

    first = await dispatcher.deliver(task, db_session)
    again = await dispatcher.deliver(task, db_session)

    assert first.success and again.success
    assert again.affected == 0


async def test_deliver_storage_failure_rolls_back(dispatcher):
    db = AsyncMock()
    db.execute.side_effect = RuntimeError("database is locked")

    result = await dispatcher.deliver(DeleteTodosTask(team_id=TEAM, ids=[1]), db)

    assert result.success is False
    assert result.error == "Failed to process task"
    db.rollback.assert_awaited_once()


async def test_deliver_unknown_task(dispatcher):
    result = await dispatcher.deliver(object(), AsyncMock())

    assert result.success is False
    assert "Unknown task type" in result.error
