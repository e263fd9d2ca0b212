"""Tests for the request/task model (task_engine/model.py)."""

from __future__ import annotations

import pytest

from task_manager_mcp.task_engine.errors import InvalidEditError
from task_manager_mcp.task_engine.model import (
    Request,
    Task,
    TaskPriority,
    TaskSpec,
    TaskStatus,
    parse_id_number,
)


class TestTaskCreation:
    def test_default_values(self) -> None:
        t = Task(id="task-1", title="Test task")
        assert t.status == TaskStatus.PENDING
        assert t.priority == TaskPriority.MEDIUM
        assert t.depends_on == []
        assert t.parent_id is None
        assert t.subtask_ids == []
        assert t.failure_reason is None
        assert t.completed_details == ""
        assert not t.is_terminal

    def test_terminal_statuses(self) -> None:
        assert TaskStatus.DONE.is_terminal
        assert TaskStatus.FAILED.is_terminal
        assert not TaskStatus.PENDING.is_terminal
        assert not TaskStatus.ACTIVE.is_terminal

    def test_priority_sort_keys(self) -> None:
        ordered = sorted(TaskPriority, key=lambda p: p.sort_key)
        assert ordered == [TaskPriority.HIGH, TaskPriority.MEDIUM, TaskPriority.LOW]

    def test_number_from_id(self) -> None:
        assert Task(id="task-42").number == 42
        assert Task(id="custom").number == 0


class TestParseIdNumber:
    def test_valid(self) -> None:
        assert parse_id_number("req-7", "req-") == 7

    def test_wrong_prefix(self) -> None:
        assert parse_id_number("task-7", "req-") is None

    def test_non_numeric(self) -> None:
        assert parse_id_number("task-abc", "task-") is None


class TestTaskSerialization:
    def test_camel_case_keys(self) -> None:
        t = Task(
            id="task-3",
            title="Child",
            depends_on=["task-1"],
            parent_id="task-2",
            status=TaskStatus.FAILED,
            failure_reason="boom",
        )
        d = t.to_dict()
        assert d["dependsOn"] == ["task-1"]
        assert d["parentId"] == "task-2"
        assert d["subtaskIds"] == []
        assert d["failureReason"] == "boom"
        assert d["status"] == "failed"
        assert d["completedDetails"] == ""

    def test_optional_keys_omitted(self) -> None:
        d = Task(id="task-1", title="Top").to_dict()
        assert "parentId" not in d
        assert "failureReason" not in d

    def test_from_dict_tolerates_missing_fields(self) -> None:
        t = Task.from_dict({"id": "task-9", "title": "Old", "status": "active"})
        assert t.status == TaskStatus.ACTIVE
        assert t.priority == TaskPriority.MEDIUM
        assert t.depends_on == []
        assert t.subtask_ids == []

    def test_from_dict_invalid_enums_fall_back(self) -> None:
        t = Task.from_dict({"id": "task-9", "status": "weird", "priority": "urgent"})
        assert t.status == TaskStatus.PENDING
        assert t.priority == TaskPriority.MEDIUM

    def test_summary(self) -> None:
        t = Task(id="task-1", title="A", description="d", priority=TaskPriority.LOW)
        assert t.summary() == {
            "id": "task-1",
            "title": "A",
            "description": "d",
            "priority": "low",
            "dependsOn": [],
        }


class TestRequest:
    def _request(self) -> Request:
        return Request(
            request_id="req-1",
            original_request="Ship it",
            tasks=[
                Task(id="task-1", status=TaskStatus.DONE),
                Task(id="task-2", status=TaskStatus.FAILED),
                Task(id="task-3"),
            ],
        )

    def test_lookup(self) -> None:
        req = self._request()
        assert req.get_task("task-2") is not None
        assert req.get_task("task-99") is None
        assert set(req.task_map()) == {"task-1", "task-2", "task-3"}

    def test_terminal_counting(self) -> None:
        req = self._request()
        assert req.terminal_count() == 2
        assert not req.all_terminal()
        req.tasks[2].status = TaskStatus.DONE
        assert req.all_terminal()

    def test_from_dict_skips_garbage_tasks(self) -> None:
        req = Request.from_dict({
            "requestId": "req-2",
            "originalRequest": "x",
            "tasks": [{"id": "task-1"}, "not-a-task", None],
        })
        assert [t.id for t in req.tasks] == ["task-1"]
        assert req.completed is False


class TestTaskSpec:
    def test_from_dict_camel_case(self) -> None:
        spec = TaskSpec.from_dict({"title": "A", "description": "d", "priority": "high", "dependsOn": ["task-1"]})
        assert spec.priority == TaskPriority.HIGH
        assert spec.depends_on == ["task-1"]

    def test_missing_priority(self) -> None:
        assert TaskSpec.from_dict({"title": "A"}).priority is None

    def test_invalid_priority(self) -> None:
        with pytest.raises(InvalidEditError, match="Invalid priority"):
            TaskSpec.from_dict({"title": "A", "priority": "P0"})
