"""Parent/child links between tasks of one request.

A child points at its parent through ``parent_id`` and the parent lists the
child in ``subtask_ids``; every function here keeps both sides in step.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Optional

from .errors import InvalidStateError
from .model import Request, Task, TaskPriority

logger = logging.getLogger(__name__)


def add_subtask(
    request: Request,
    parent: Task,
    task_id: str,
    title: str,
    description: str,
    priority: Optional[TaskPriority] = None,
    depends_on: Optional[list[str]] = None,
) -> Task:
    """Create a pending child of *parent* and link it both ways.

    Raises :class:`InvalidStateError` when the request is already completed
    or the parent is terminal.
    """
    if request.completed:
        raise InvalidStateError("Cannot add subtask to a completed request")
    if parent.is_terminal:
        raise InvalidStateError(
            f"Cannot add subtask to a parent task in terminal status ('{parent.status.value}')"
        )

    child = Task(
        id=task_id,
        title=title,
        description=description,
        priority=priority or parent.priority,
        depends_on=list(depends_on or []),
        parent_id=parent.id,
    )
    request.tasks.append(child)
    parent.subtask_ids.append(child.id)
    logger.debug("Linked subtask %s under %s", child.id, parent.id)
    return child


def is_direct_subtask(request: Request, parent_id: str, child_id: str) -> bool:
    parent = request.get_task(parent_id)
    return parent is not None and child_id in parent.subtask_ids


def collect_subtree(request: Request, root_id: str) -> list[str]:
    """Breadth-first ids of *root_id* and all its descendants, root first."""
    task_map = request.task_map()
    if root_id not in task_map:
        return []
    seen: set[str] = set()
    ordered: list[str] = []
    queue: deque[str] = deque([root_id])
    while queue:
        current = queue.popleft()
        if current in seen:
            continue
        seen.add(current)
        ordered.append(current)
        for child_id in task_map[current].subtask_ids:
            if child_id in task_map and child_id not in seen:
                queue.append(child_id)
    return ordered


def remove_subtree(request: Request, root_id: str) -> bool:
    """Delete *root_id* with every descendant and repair surviving references.

    Survivors lose ``depends_on`` entries pointing into the removed set, and a
    survivor whose parent was removed becomes top-level. Returns False only
    when *root_id* is not in the request.
    """
    removed = set(collect_subtree(request, root_id))
    if not removed:
        return False

    root = request.get_task(root_id)
    if root is not None and root.parent_id:
        former_parent = request.get_task(root.parent_id)
        if former_parent is not None:
            former_parent.subtask_ids = [i for i in former_parent.subtask_ids if i != root_id]

    request.tasks = [t for t in request.tasks if t.id not in removed]

    for task in request.tasks:
        if any(dep in removed for dep in task.depends_on):
            task.depends_on = [dep for dep in task.depends_on if dep not in removed]
        if task.parent_id in removed:
            task.parent_id = None
        if any(child in removed for child in task.subtask_ids):
            task.subtask_ids = [c for c in task.subtask_ids if c not in removed]

    logger.info("Removed %d task(s) rooted at %s from %s", len(removed), root_id, request.request_id)
    return True
