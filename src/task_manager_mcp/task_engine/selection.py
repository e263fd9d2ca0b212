"""Pick the next actionable task of a request.

Work inside an already-started subtree comes first: pending children of
active parents are considered before anything else, and only when none is
actionable does the search widen to every open task whose parent is not
active. Ties break on priority, then on the numeric task id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from .dependencies import dependencies_met
from .lifecycle import activate_for_selection, refresh_request_completion
from .model import Request, Task, TaskStatus

ALREADY_COMPLETED = "already_completed"
NEXT_TASK = "next_task"
ALL_TERMINAL = "all_tasks_terminal_request_completed"
NO_ACTIONABLE = "no_actionable_task"


@dataclass
class Selection:
    status: str
    task: Optional[Task] = None
    changed: bool = False


def _parent_is_active(task: Task, task_map: Mapping[str, Task]) -> bool:
    if not task.parent_id:
        return False
    parent = task_map.get(task.parent_id)
    return parent is not None and parent.status == TaskStatus.ACTIVE


def actionable_candidates(request: Request) -> list[Task]:
    """Candidates in selection order, head first."""
    task_map = request.task_map()

    candidates: list[Task] = []
    for parent in request.tasks:
        if parent.status != TaskStatus.ACTIVE or not parent.subtask_ids:
            continue
        for child_id in parent.subtask_ids:
            child = task_map.get(child_id)
            if child is not None and child.status == TaskStatus.PENDING and dependencies_met(child, task_map):
                candidates.append(child)

    if not candidates:
        candidates = [
            t for t in request.tasks
            if t.status in (TaskStatus.PENDING, TaskStatus.ACTIVE)
            and not _parent_is_active(t, task_map)
            and dependencies_met(t, task_map)
        ]

    candidates.sort(key=lambda t: (
        0 if _parent_is_active(t, task_map) else 1,
        t.priority.sort_key,
        t.number,
    ))
    return candidates


def select_next(request: Request) -> Selection:
    if request.completed:
        return Selection(status=ALREADY_COMPLETED)

    candidates = actionable_candidates(request)
    if not candidates:
        if request.all_terminal():
            changed = refresh_request_completion(request)
            return Selection(status=ALL_TERMINAL, changed=changed)
        return Selection(status=NO_ACTIONABLE)

    head = candidates[0]
    changed = activate_for_selection(request, head)
    return Selection(status=NEXT_TASK, task=head, changed=changed)
