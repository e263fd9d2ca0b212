"""Tests for the inspection commands (cli.py)."""

from __future__ import annotations

from pathlib import Path

import pytest

from task_manager_mcp.cli import build_parser, main, render_request
from task_manager_mcp.task_engine.engine import TaskEngine
from task_manager_mcp.task_engine.model import Request, Task
from task_manager_mcp.task_engine.store import TaskStore


@pytest.fixture
def task_file(tmp_path: Path) -> Path:
    path = tmp_path / "tasks.yaml"
    engine = TaskEngine(TaskStore(path))
    engine.request_planning("Release [v2]", [
        {"title": "Tag", "description": "t"},
        {"title": "Publish", "description": "p", "dependsOn": ["task-1"]},
    ])
    engine.add_subtask("req-1", "task-1", "Changelog", "c")
    return path


def test_default_command_is_serve() -> None:
    args = build_parser().parse_args([])
    assert args.func.__name__ == "_serve"


def test_list(task_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--file", str(task_file), "list"]) == 0
    out = capsys.readouterr().out
    assert "req-1" in out
    assert "Release [v2]" in out
    assert "In Progress" in out


def test_show(task_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--file", str(task_file), "show", "req-1"]) == 0
    out = capsys.readouterr().out
    assert "task-3 Changelog" in out
    assert "after task-1" in out


def test_show_unknown_request(task_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--file", str(task_file), "show", "req-7"]) == 1
    assert "Request not found: req-7" in capsys.readouterr().err


def test_validate(task_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--file", str(task_file), "validate", "req-1"]) == 0
    assert "All dependencies are valid." in capsys.readouterr().out

    TaskEngine(TaskStore(task_file)).add_dependency("req-1", "task-1", "task-2")
    assert main(["--file", str(task_file), "validate", "req-1"]) == 1
    assert "Circular dependency detected" in capsys.readouterr().out


def test_render_request_marks_orphans() -> None:
    req = Request(request_id="req-1", original_request="x", tasks=[Task(id="task-4", title="Stray", parent_id="task-1")])
    assert "orphaned task-4 Stray" in render_request(req)


def test_render_request_keeps_child_order_and_nesting() -> None:
    req = Request(
        request_id="req-1",
        original_request="x",
        tasks=[
            Task(id="task-1", title="Root", subtask_ids=["task-3", "task-2"]),
            Task(id="task-2", title="Second", parent_id="task-1"),
            Task(id="task-3", title="First", parent_id="task-1", subtask_ids=["task-4"]),
            Task(id="task-4", title="Leaf", parent_id="task-3"),
            Task(id="task-5", title="Sibling"),
        ],
    )
    lines = render_request(req).splitlines()
    order = [next(i for i, line in enumerate(lines) if f"{tid} " in line) for tid in
             ("task-1", "task-3", "task-4", "task-2", "task-5")]
    assert order == sorted(order)
    indent = {tid: next(line.index(tid) for line in lines if f"{tid} " in line) for tid in ("task-1", "task-3", "task-4")}
    assert indent["task-1"] < indent["task-3"] < indent["task-4"]
    assert "orphaned" not in "\n".join(lines)
