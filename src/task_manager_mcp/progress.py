"""Render requests and their tasks as markdown progress tables."""

from __future__ import annotations

from .task_engine.model import Request, Task, TaskStatus

_STATUS_LABELS = {
    TaskStatus.PENDING: "⏳ Pending",
    TaskStatus.ACTIVE: "🔄 Active",
    TaskStatus.DONE: "✅ Done",
    TaskStatus.FAILED: "❌ Failed",
}


def status_label(task: Task) -> str:
    label = _STATUS_LABELS[task.status]
    if task.status == TaskStatus.FAILED and task.failure_reason:
        label += f" ({task.failure_reason[:15]}...)"
    return label


def _row(task: Task, title: str) -> str:
    priority = task.priority.value.capitalize()
    return f"| {task.id} | {priority} | {title} | {task.description[:30]}... | {status_label(task)} |\n"


def format_task_progress_table(request: Request) -> str:
    """Top-level tasks in id order, each followed by its indented subtree."""
    table = "\nProgress Status:\n"
    table += "| Task ID | Priority | Title | Description | Status |\n"
    table += "|----------|----------|-------|-------------|----------|\n"

    task_map = request.task_map()
    seen: set[str] = set()

    top_level = sorted((t for t in request.tasks if not t.parent_id), key=lambda t: t.number)
    # (task_id, depth) work list, children pushed in reverse to keep their order
    stack: list[tuple[str, int]] = [(t.id, 0) for t in reversed(top_level)]
    while stack:
        task_id, depth = stack.pop()
        task = task_map.get(task_id)
        if task is None or task_id in seen:
            continue
        seen.add(task_id)

        indent = "  " * depth
        title = f"{indent}{task.title[:max(25 - len(indent), 0)]}"
        if task.depends_on:
            title += " (D)"
        if task.subtask_ids:
            title += f" ({len(task.subtask_ids)} sub)"
        table += _row(task, title)

        for child_id in reversed(task.subtask_ids):
            stack.append((child_id, depth + 1))

    for task in request.tasks:
        if task.id not in seen:
            table += _row(task, f"[Orphaned?] {task.title[:15]}")
    return table


def format_requests_list(requests: list[Request]) -> str:
    output = "\nRequests List:\n"
    output += "| Request ID | Original Request | Total Tasks | Done Tasks | Request Status |\n"
    output += "|------------|------------------|-------------|------------|----------------|\n"
    for req in requests:
        total = len(req.tasks)
        original = req.original_request[:30] + ("..." if len(req.original_request) > 30 else "")
        state = "✅ Completed" if req.completed else "🔄 In Progress"
        output += f"| {req.request_id} | {original} | {total} | {req.terminal_count()}/{total} | {state} |\n"
    return output
