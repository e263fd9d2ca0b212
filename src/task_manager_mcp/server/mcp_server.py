"""MCP (Model Context Protocol) stdio server for the task engine.

The server is a thin wrapper: it validates tool arguments with the pydantic
models in ``models.py``, calls the matching :class:`TaskEngine` method and
returns the result as pretty-printed JSON text.

Engine errors (unknown ids, edits on terminal tasks) come back as a normal
result tagged ``"status": "error"``. Unknown tools, invalid arguments and
storage failures raise, and the MCP SDK reports them as ``isError`` results.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Optional

from loguru import logger
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool
from pydantic import BaseModel, ValidationError

from ..constants import SERVER_NAME, SERVER_VERSION
from ..task_engine.engine import TaskEngine
from ..task_engine.errors import TaskEngineError
from . import models


class ToolError(ValueError):
    """A tool call that cannot be dispatched (unknown name, bad arguments)."""


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    args_model: type[BaseModel]
    handler: Callable[[TaskEngine, Any], dict[str, Any]]


# ---------------------------------------------------------------------------
# Tool table
# ---------------------------------------------------------------------------

TOOLS: tuple[ToolSpec, ...] = (
    ToolSpec(
        "request_planning",
        "Register a new user request and plan its associated tasks. Tasks can include 'title', "
        "'description', 'priority' (high, medium, low), and 'dependsOn' (array of task IDs).",
        models.RequestPlanningArgs,
        lambda engine, a: engine.request_planning(
            a.originalRequest, [t.to_spec() for t in a.tasks], a.splitDetails
        ),
    ),
    ToolSpec(
        "get_next_task",
        "Given a 'requestId', return the next pending task (considering priority and dependencies).",
        models.GetNextTaskArgs,
        lambda engine, a: engine.get_next_task(a.requestId),
    ),
    ToolSpec(
        "mark_task_done",
        "Mark a given task as done.",
        models.MarkTaskDoneArgs,
        lambda engine, a: engine.mark_task_done(a.requestId, a.taskId, a.completedDetails),
    ),
    ToolSpec(
        "mark_task_failed",
        "Mark a given task as failed.",
        models.MarkTaskFailedArgs,
        lambda engine, a: engine.mark_task_failed(a.requestId, a.taskId, a.reason),
    ),
    ToolSpec(
        "open_task_details",
        "Get details of a specific task by 'taskId', including its status, priority, and dependencies.",
        models.OpenTaskDetailsArgs,
        lambda engine, a: engine.open_task_details(a.taskId),
    ),
    ToolSpec(
        "list_requests",
        "List all requests with their basic information and summary of tasks.",
        models.ListRequestsArgs,
        lambda engine, a: engine.list_requests(),
    ),
    ToolSpec(
        "add_tasks_to_request",
        "Add new tasks to an existing request. Tasks can include 'title', 'description', "
        "'priority', and 'dependsOn'.",
        models.AddTasksToRequestArgs,
        lambda engine, a: engine.add_tasks_to_request(a.requestId, [t.to_spec() for t in a.tasks]),
    ),
    ToolSpec(
        "update_task",
        "Update an existing task's title, description, or priority.",
        models.UpdateTaskArgs,
        lambda engine, a: engine.update_task(
            a.requestId,
            a.taskId,
            title=a.title,
            description=a.description,
            priority=a.priority.value if a.priority else None,
        ),
    ),
    ToolSpec(
        "add_dependency",
        "Add a dependency between two tasks in the same request.",
        models.AddDependencyArgs,
        lambda engine, a: engine.add_dependency(a.requestId, a.taskId, a.dependsOnTaskId),
    ),
    ToolSpec(
        "remove_dependency",
        "Remove a dependency between two tasks.",
        models.RemoveDependencyArgs,
        lambda engine, a: engine.remove_dependency(a.requestId, a.taskId, a.dependsOnTaskId),
    ),
    ToolSpec(
        "validate_dependencies",
        "Check all tasks in a request for dependency issues.",
        models.ValidateDependenciesArgs,
        lambda engine, a: engine.validate_dependencies(a.requestId),
    ),
    ToolSpec(
        "delete_task",
        "Delete a specific task, and all of its subtasks, from a request.",
        models.DeleteTaskArgs,
        lambda engine, a: engine.delete_task(a.requestId, a.taskId),
    ),
    ToolSpec(
        "add_subtask",
        "Add a new subtask to a specified parent task within a request.",
        models.AddSubtaskArgs,
        lambda engine, a: engine.add_subtask(
            a.requestId,
            a.parentTaskId,
            a.subtaskTitle,
            a.subtaskDescription,
            priority=a.priority.value if a.priority else None,
            depends_on=a.dependsOn,
        ),
    ),
    ToolSpec(
        "remove_subtask",
        "Remove a subtask and all its descendants. If parentTaskId is provided, it will also be "
        "unlinked from that parent.",
        models.RemoveSubtaskArgs,
        lambda engine, a: engine.remove_subtask(a.requestId, a.subtaskId, a.parentTaskId),
    ),
)

_TOOLS_BY_NAME = {spec.name: spec for spec in TOOLS}


def tool_definitions() -> list[Tool]:
    return [
        Tool(
            name=spec.name,
            description=spec.description,
            inputSchema=spec.args_model.model_json_schema(),
        )
        for spec in TOOLS
    ]


def dispatch_tool(engine: TaskEngine, name: str, arguments: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Validate *arguments* for tool *name* and run it against *engine*."""
    spec = _TOOLS_BY_NAME.get(name)
    if spec is None:
        raise ToolError(f"Unknown tool: {name}")
    try:
        args = spec.args_model.model_validate(arguments or {})
    except ValidationError as exc:
        raise ToolError(f"Invalid arguments: {exc}") from exc

    logger.debug("Dispatching {} with {}", name, arguments)
    try:
        return spec.handler(engine, args)
    except TaskEngineError as exc:
        logger.info("{} rejected: {}", name, exc)
        return {"status": "error", "message": str(exc)}


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------

def create_server(engine: TaskEngine) -> Server:
    server: Server = Server(SERVER_NAME, version=SERVER_VERSION)

    @server.list_tools()  # type: ignore
    async def list_tools() -> list[Tool]:  # pyright: ignore[reportUnusedFunction]
        return tool_definitions()

    @server.call_tool()  # type: ignore
    async def call_tool(  # pyright: ignore[reportUnusedFunction]
        name: str, arguments: Optional[dict[str, Any]]
    ) -> list[TextContent]:
        try:
            result = dispatch_tool(engine, name, arguments)
        except Exception:
            logger.exception("Tool {} failed", name)
            raise
        return [TextContent(type="text", text=json.dumps(result, indent=2, ensure_ascii=False))]

    return server


async def run_stdio(engine: TaskEngine) -> None:
    """Serve *engine* over stdin/stdout until the client disconnects."""
    server = create_server(engine)
    async with stdio_server() as (read_stream, write_stream):
        logger.info("Task Manager MCP Server running. Saving tasks at: {}", engine.store.path)
        await server.run(read_stream, write_stream, server.create_initialization_options())
