"""Task status transitions and their side effects on parent and request.

``pending -> active -> {done, failed}``; ``done`` and ``failed`` are terminal.
Entering a terminal state may auto-complete the parent (one level only) and
then the request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..constants import (
    AUTO_COMPLETED_AFTER_FAILURE_DETAILS,
    AUTO_COMPLETED_DETAILS,
    DEFAULT_COMPLETED_DETAILS,
    DEFAULT_FAILURE_REASON,
)
from .errors import InvalidStateError
from .model import Request, Task, TaskStatus

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Valid status transitions
# ---------------------------------------------------------------------------

VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.ACTIVE, TaskStatus.DONE, TaskStatus.FAILED},
    TaskStatus.ACTIVE: {TaskStatus.DONE, TaskStatus.FAILED},
    TaskStatus.DONE: set(),
    TaskStatus.FAILED: set(),
}


@dataclass
class TransitionOutcome:
    """Side effects of moving one task into a terminal state."""

    task: Task
    parent_completed: Optional[Task] = None
    request_completed: bool = False


def transition(task: Task, target: TaskStatus) -> None:
    """Move *task* to *target*, keeping the outcome fields consistent."""
    if target not in VALID_TRANSITIONS[task.status]:
        raise InvalidStateError(
            f"Cannot transition {task.id} from {task.status.value} to {target.value}"
        )
    task.status = target
    if target != TaskStatus.FAILED:
        task.failure_reason = None
    if target != TaskStatus.DONE:
        task.completed_details = ""


def ensure_editable(task: Task) -> None:
    if task.is_terminal:
        raise InvalidStateError(
            f"Cannot update task in terminal status ('{task.status.value}')"
        )


def refresh_request_completion(request: Request) -> bool:
    """Set ``completed`` once every task is terminal. Returns True if it just flipped."""
    if request.completed or not request.all_terminal():
        return False
    request.completed = True
    logger.info("Request %s completed", request.request_id)
    return True


def _complete_parent_if_settled(request: Request, task: Task, after_failure: bool) -> Optional[Task]:
    """Single-level auto-completion: the grandparent is left for a later call."""
    if not task.parent_id:
        return None
    parent = request.get_task(task.parent_id)
    if parent is None or parent.is_terminal:
        return None
    task_map = request.task_map()
    for child_id in parent.subtask_ids:
        child = task_map.get(child_id)
        if child is None or not child.is_terminal:
            return None
    transition(parent, TaskStatus.DONE)
    parent.completed_details = (
        AUTO_COMPLETED_AFTER_FAILURE_DETAILS if after_failure else AUTO_COMPLETED_DETAILS
    )
    logger.info("Parent task %s auto-completed after %s", parent.id, task.id)
    return parent


def complete_task(request: Request, task: Task, details: Optional[str] = None) -> TransitionOutcome:
    transition(task, TaskStatus.DONE)
    task.completed_details = details or DEFAULT_COMPLETED_DETAILS
    parent = _complete_parent_if_settled(request, task, after_failure=False)
    return TransitionOutcome(
        task=task,
        parent_completed=parent,
        request_completed=refresh_request_completion(request),
    )


def fail_task(request: Request, task: Task, reason: Optional[str] = None) -> TransitionOutcome:
    transition(task, TaskStatus.FAILED)
    task.failure_reason = reason or DEFAULT_FAILURE_REASON
    parent = _complete_parent_if_settled(request, task, after_failure=True)
    return TransitionOutcome(
        task=task,
        parent_completed=parent,
        request_completed=refresh_request_completion(request),
    )


def activate_for_selection(request: Request, task: Task) -> bool:
    """Activate a selected task, first activating a pending parent.

    Returns True if any status changed. Re-selecting an active task is a
    no-op.
    """
    if task.status != TaskStatus.PENDING:
        return False
    if task.parent_id:
        parent = request.get_task(task.parent_id)
        if parent is not None and parent.status == TaskStatus.PENDING:
            transition(parent, TaskStatus.ACTIVE)
            logger.debug("Activated parent %s for %s", parent.id, task.id)
    transition(task, TaskStatus.ACTIVE)
    return True
