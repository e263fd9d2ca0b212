#!/usr/bin/env python3
"""Command-line entry point: run the MCP server or inspect the task file."""

from __future__ import annotations

import argparse
import sys
from typing import Optional

import anyio
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from .config import Settings, load_settings
from .progress import status_label
from .server import run_stdio
from .task_engine.dependencies import validate_request
from .task_engine.engine import TaskEngine
from .task_engine.model import Request, Task
from .task_engine.store import TaskStore


def _configure_logging(level: str = "INFO") -> None:
    """Send loguru output to stderr; stdout belongs to the MCP stream."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan> - "
            "{message}"
        ),
    )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def render_requests(requests: list[Request]) -> str:
    console = Console(record=True, width=120)
    table = Table(title="Requests")
    table.add_column("Request ID", style="cyan", no_wrap=True)
    table.add_column("Original Request")
    table.add_column("Tasks", justify="right")
    table.add_column("Terminal", justify="right")
    table.add_column("Status")
    for req in requests:
        table.add_row(
            req.request_id,
            escape(req.original_request),
            str(len(req.tasks)),
            str(req.terminal_count()),
            "Completed" if req.completed else "In Progress",
        )
    console.print(table)
    return console.export_text()


def _task_label(task: Task) -> str:
    label = f"[bold]{task.id}[/bold] {escape(task.title)} ({task.priority.value}) - {status_label(task)}"
    if task.depends_on:
        label += f" [dim]after {', '.join(task.depends_on)}[/dim]"
    return label


def render_request(request: Request) -> str:
    console = Console(record=True, width=120)
    tree = Tree(f"[bold]{request.request_id}[/bold]: {escape(request.original_request)}")
    task_map = request.task_map()
    seen: set[str] = set()

    top_level = sorted((t for t in request.tasks if not t.parent_id), key=lambda t: t.number)
    # (task_id, parent node) work list, pushed in reverse to keep sibling order
    stack: list[tuple[str, Tree]] = [(t.id, tree) for t in reversed(top_level)]
    while stack:
        task_id, node = stack.pop()
        task = task_map.get(task_id)
        if task is None or task_id in seen:
            continue
        seen.add(task_id)
        branch = node.add(_task_label(task))
        for child_id in reversed(task.subtask_ids):
            stack.append((child_id, branch))

    for task in request.tasks:
        if task.id not in seen:
            tree.add(f"[yellow]orphaned[/yellow] {_task_label(task)}")
    console.print(tree)
    return console.export_text()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _serve(settings: Settings, args: argparse.Namespace) -> int:
    engine = TaskEngine(TaskStore(settings.file_path))
    anyio.run(run_stdio, engine)
    return 0


def _list(settings: Settings, args: argparse.Namespace) -> int:
    store = TaskStore(settings.file_path).load()
    sys.stdout.write(render_requests(store.all_requests()))
    return 0


def _show(settings: Settings, args: argparse.Namespace) -> int:
    req = TaskStore(settings.file_path).load().find(args.request_id)
    if req is None:
        sys.stderr.write(f"Request not found: {args.request_id}\n")
        return 1
    sys.stdout.write(render_request(req))
    return 0


def _validate(settings: Settings, args: argparse.Namespace) -> int:
    req = TaskStore(settings.file_path).load().find(args.request_id)
    if req is None:
        sys.stderr.write(f"Request not found: {args.request_id}\n")
        return 1
    report = validate_request(req)
    if report.passed:
        sys.stdout.write("All dependencies are valid.\n")
        return 0
    for issue in report.issues:
        sys.stdout.write(f"- {issue}\n")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Task manager MCP server - plan requests into tasks and work them one at a time",
    )
    parser.add_argument("--file", default=None, help="Task file (.json or .yaml); overrides TASK_MANAGER_FILE_PATH")
    parser.add_argument("--log-level", default=None, help="Log level (default: INFO)")
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the MCP server over stdio (default)")
    serve.set_defaults(func=_serve)

    rlist = subparsers.add_parser("list", help="List requests")
    rlist.set_defaults(func=_list)

    show = subparsers.add_parser("show", help="Show a request's task tree")
    show.add_argument("request_id")
    show.set_defaults(func=_show)

    validate = subparsers.add_parser("validate", help="Check a request's dependencies")
    validate.add_argument("request_id")
    validate.set_defaults(func=_validate)

    parser.set_defaults(func=_serve)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings, warnings = load_settings(file_path=args.file, log_level=args.log_level)
    _configure_logging(settings.log_level)
    for warning in warnings:
        logger.warning(warning)
    return int(args.func(settings, args) or 0)


if __name__ == "__main__":
    raise SystemExit(main())
