"""Tests for the MCP tool surface (server/mcp_server.py)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from mcp import types

from task_manager_mcp import io_utils
from task_manager_mcp.constants import SERVER_NAME, SERVER_VERSION
from task_manager_mcp.server import create_server, dispatch_tool, tool_definitions
from task_manager_mcp.server.mcp_server import ToolError
from task_manager_mcp.task_engine.engine import TaskEngine
from task_manager_mcp.task_engine.store import TaskStore

EXPECTED_TOOLS = [
    "request_planning",
    "get_next_task",
    "mark_task_done",
    "mark_task_failed",
    "open_task_details",
    "list_requests",
    "add_tasks_to_request",
    "update_task",
    "add_dependency",
    "remove_dependency",
    "validate_dependencies",
    "delete_task",
    "add_subtask",
    "remove_subtask",
]


@pytest.fixture
def engine(tmp_path: Path) -> TaskEngine:
    return TaskEngine(TaskStore(tmp_path / "tasks.json"))


def _plan(engine: TaskEngine) -> dict:
    return dispatch_tool(engine, "request_planning", {
        "originalRequest": "Write docs",
        "tasks": [
            {"title": "Outline", "description": "o", "priority": "high"},
            {"title": "Draft", "description": "d", "dependsOn": ["task-1"]},
        ],
    })


class TestToolDefinitions:
    def test_all_tools_listed_in_order(self) -> None:
        assert [t.name for t in tool_definitions()] == EXPECTED_TOOLS

    def test_schema_uses_wire_field_names(self) -> None:
        tools = {t.name: t for t in tool_definitions()}
        schema = tools["mark_task_done"].inputSchema
        assert set(schema["required"]) == {"requestId", "taskId"}
        assert "completedDetails" in schema["properties"]

    def test_list_requests_takes_no_arguments(self) -> None:
        tools = {t.name: t for t in tool_definitions()}
        assert tools["list_requests"].inputSchema.get("required", []) == []

    def test_create_server(self, engine: TaskEngine) -> None:
        assert create_server(engine).name == SERVER_NAME


class TestDispatch:
    def test_plan_and_work(self, engine: TaskEngine) -> None:
        planned = _plan(engine)
        assert planned["status"] == "planned"
        assert planned["tasks"][1]["dependsOn"] == ["task-1"]

        nxt = dispatch_tool(engine, "get_next_task", {"requestId": "req-1"})
        assert nxt["task"]["id"] == "task-1"

        done = dispatch_tool(engine, "mark_task_done", {"requestId": "req-1", "taskId": "task-1"})
        assert done["task"]["completedDetails"] == "Completed successfully"

    def test_update_task_priority(self, engine: TaskEngine) -> None:
        _plan(engine)
        result = dispatch_tool(engine, "update_task", {"requestId": "req-1", "taskId": "task-2", "priority": "low"})
        assert result["task"]["priority"] == "low"

    def test_add_and_remove_subtask(self, engine: TaskEngine) -> None:
        _plan(engine)
        added = dispatch_tool(engine, "add_subtask", {
            "requestId": "req-1",
            "parentTaskId": "task-1",
            "subtaskTitle": "Sources",
            "subtaskDescription": "collect",
        })
        assert added["subtask"]["id"] == "task-3"
        assert added["subtask"]["priority"] == "high"
        removed = dispatch_tool(engine, "remove_subtask", {"requestId": "req-1", "subtaskId": "task-3"})
        assert removed["status"] == "subtask_removed"

    def test_engine_error_becomes_error_result(self, engine: TaskEngine) -> None:
        result = dispatch_tool(engine, "get_next_task", {"requestId": "req-9"})
        assert result == {"status": "error", "message": "Request not found"}

    def test_list_requests_with_no_arguments(self, engine: TaskEngine) -> None:
        assert dispatch_tool(engine, "list_requests", None)["requests"] == []

    def test_unknown_tool(self, engine: TaskEngine) -> None:
        with pytest.raises(ToolError, match="Unknown tool: explode"):
            dispatch_tool(engine, "explode", {})

    def test_missing_required_argument(self, engine: TaskEngine) -> None:
        with pytest.raises(ToolError, match="Invalid arguments"):
            dispatch_tool(engine, "mark_task_done", {"requestId": "req-1"})

    def test_invalid_priority_argument(self, engine: TaskEngine) -> None:
        with pytest.raises(ToolError):
            dispatch_tool(engine, "request_planning", {
                "originalRequest": "x",
                "tasks": [{"title": "a", "description": "b", "priority": "urgent"}],
            })


@pytest.mark.anyio
async def test_list_tools_handler(engine: TaskEngine) -> None:
    server = create_server(engine)
    handler = server.request_handlers[types.ListToolsRequest]
    result = await handler(types.ListToolsRequest(method="tools/list"))
    assert [t.name for t in result.root.tools] == EXPECTED_TOOLS


def _call(server, name: str, arguments: dict):
    handler = server.request_handlers[types.CallToolRequest]
    request = types.CallToolRequest(
        method="tools/call",
        params=types.CallToolRequestParams(name=name, arguments=arguments),
    )
    return handler(request)


class TestCallToolHandler:
    @pytest.mark.anyio
    async def test_engine_error_is_a_normal_result(self, engine: TaskEngine) -> None:
        result = (await _call(create_server(engine), "get_next_task", {"requestId": "req-9"})).root
        assert result.isError is False
        assert json.loads(result.content[0].text) == {"status": "error", "message": "Request not found"}

    @pytest.mark.anyio
    async def test_success_returns_json_text(self, engine: TaskEngine) -> None:
        _plan(engine)
        result = (await _call(create_server(engine), "get_next_task", {"requestId": "req-1"})).root
        assert result.isError is False
        assert json.loads(result.content[0].text)["task"]["id"] == "task-1"

    @pytest.mark.anyio
    async def test_storage_failure_is_an_error_result(
        self, engine: TaskEngine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _plan(engine)
        path = engine.store.path
        before = path.read_text(encoding="utf-8")

        def refuse(src, dst):
            raise PermissionError(13, "Permission denied", str(dst))

        monkeypatch.setattr(io_utils.os, "replace", refuse)
        result = (await _call(
            create_server(engine), "mark_task_done", {"requestId": "req-1", "taskId": "task-1"}
        )).root
        assert result.isError is True
        assert "Cannot save tasks" in result.content[0].text
        assert path.read_text(encoding="utf-8") == before
        assert not path.with_suffix(path.suffix + ".tmp").exists()


def test_server_announces_version(engine: TaskEngine) -> None:
    assert create_server(engine).version == SERVER_VERSION
