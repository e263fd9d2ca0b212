"""Task engine: one method per tool, each a single reload-edit-save cycle.

This is the primary entry-point for all task manipulation. It wraps
:class:`TaskStore` with the business rules from ``dependencies``,
``hierarchy``, ``lifecycle`` and ``selection`` and shapes every outcome as a
JSON-ready result dict carrying a ``status`` tag.

Unknown ids and edits that the lifecycle forbids raise
:class:`~.errors.TaskEngineError`; idempotent repeats (marking a terminal task
again, adding an existing dependency) come back as ``already_*`` /
``no_change`` results instead.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence, Union

from ..progress import format_requests_list, format_task_progress_table
from . import hierarchy, lifecycle, selection
from .dependencies import validate_request
from .errors import InvalidEditError, InvalidStateError, NotFoundError
from .model import Request, Task, TaskPriority, TaskSpec, TaskStatus
from .store import Store, TaskStore

logger = logging.getLogger(__name__)

SpecLike = Union[TaskSpec, Mapping[str, Any]]
PriorityLike = Union[TaskPriority, str, None]


def _coerce_priority(value: PriorityLike) -> Optional[TaskPriority]:
    if value is None or value == "":
        return None
    if isinstance(value, TaskPriority):
        return value
    try:
        return TaskPriority(value)
    except ValueError as exc:
        raise InvalidEditError(f"Invalid priority '{value}'") from exc


def _coerce_spec(spec: SpecLike) -> TaskSpec:
    if isinstance(spec, TaskSpec):
        return spec
    return TaskSpec.from_dict(dict(spec))


def _require_request(store: Store, request_id: str) -> Request:
    req = store.find(request_id)
    if req is None:
        raise NotFoundError("Request not found")
    return req


def _require_task(req: Request, task_id: str, message: str = "Task not found") -> Task:
    task = req.get_task(task_id)
    if task is None:
        raise NotFoundError(message)
    return task


class TaskEngine:
    """Manage requests and the lifecycle of their tasks.

    Parameters
    ----------
    store:
        The persistence collaborator. Every call reloads from it; nothing is
        cached between calls.
    """

    def __init__(self, store: TaskStore) -> None:
        self.store = store

    def _new_task(self, store: Store, spec: TaskSpec) -> Task:
        return Task(
            id=store.next_task_id(),
            title=spec.title,
            description=spec.description,
            priority=spec.priority or TaskPriority.MEDIUM,
            depends_on=list(spec.depends_on),
        )

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def request_planning(
        self,
        original_request: str,
        tasks: Sequence[SpecLike],
        split_details: Optional[str] = None,
    ) -> dict[str, Any]:
        specs = [_coerce_spec(s) for s in tasks]
        with self.store.transaction() as tx:
            request_id = tx.store.next_request_id()
            new_tasks = [self._new_task(tx.store, spec) for spec in specs]
            req = Request(
                request_id=request_id,
                original_request=original_request,
                split_details=split_details or original_request,
                tasks=new_tasks,
            )
            tx.store.requests.append(req)
            tx.dirty = True

        logger.info("Planned request %s with %d task(s)", request_id, len(new_tasks))
        return {
            "status": "planned",
            "requestId": request_id,
            "totalTasks": len(new_tasks),
            "tasks": [t.summary() for t in new_tasks],
            "message": (
                "Tasks have been successfully added. Please use 'get_next_task' to retrieve the first task.\n"
                f"{format_task_progress_table(req)}"
            ),
        }

    def add_tasks_to_request(self, request_id: str, tasks: Sequence[SpecLike]) -> dict[str, Any]:
        specs = [_coerce_spec(s) for s in tasks]
        with self.store.transaction() as tx:
            req = _require_request(tx.store, request_id)
            if req.completed:
                raise InvalidStateError("Cannot add tasks to completed request")
            new_tasks = [self._new_task(tx.store, spec) for spec in specs]
            req.tasks.extend(new_tasks)
            tx.dirty = True

        return {
            "status": "tasks_added",
            "message": f"Added {len(new_tasks)} new tasks to request.\n{format_task_progress_table(req)}",
            "newTasks": [t.summary() for t in new_tasks],
        }

    # ------------------------------------------------------------------
    # Selection and status transitions
    # ------------------------------------------------------------------

    def get_next_task(self, request_id: str) -> dict[str, Any]:
        with self.store.transaction() as tx:
            req = _require_request(tx.store, request_id)
            picked = selection.select_next(req)
            if picked.changed:
                tx.dirty = True

        if picked.status == selection.ALREADY_COMPLETED:
            return {"status": picked.status, "message": "Request already completed."}

        table = format_task_progress_table(req)
        if picked.status == selection.ALL_TERMINAL:
            return {
                "status": picked.status,
                "message": (
                    "All tasks are in a terminal state (done or failed), and the request is marked as complete.\n"
                    f"{table}"
                ),
            }

        task = picked.task
        if task is None:
            return {
                "status": selection.NO_ACTIONABLE,
                "message": (
                    "No pending or active tasks found with met dependencies. "
                    f"Consider parent task statuses for subtasks.\n{table}"
                ),
            }

        subtask_of = f", Subtask of: {task.parent_id}" if task.parent_id else ""
        return {
            "status": picked.status,
            "task": {
                "id": task.id,
                "title": task.title,
                "description": task.description,
                "status": task.status.value,
                "priority": task.priority.value,
                "dependsOn": list(task.depends_on),
                "parentId": task.parent_id,
                "subtaskIds": list(task.subtask_ids),
            },
            "message": f"Next task (Priority: {task.priority.value}{subtask_of}) is ready.\n{table}",
        }

    @staticmethod
    def _already_terminal(task: Task) -> dict[str, Any]:
        if task.status == TaskStatus.DONE:
            return {"status": "already_done", "message": "Task is already marked done."}
        return {"status": "already_failed", "message": "Task is already marked failed."}

    @staticmethod
    def _propagation_message(req: Request, outcome: lifecycle.TransitionOutcome) -> str:
        message = ""
        if outcome.parent_completed is not None:
            message += f" Parent task {outcome.parent_completed.id} automatically marked done."
        if outcome.request_completed:
            message += (
                f" All tasks in request {req.request_id} are now in a terminal state, "
                "and the request is marked as completed."
            )
        return message

    def mark_task_done(
        self,
        request_id: str,
        task_id: str,
        completed_details: Optional[str] = None,
    ) -> dict[str, Any]:
        with self.store.transaction() as tx:
            req = _require_request(tx.store, request_id)
            task = _require_task(req, task_id)
            if task.is_terminal:
                return self._already_terminal(task)
            outcome = lifecycle.complete_task(req, task, completed_details)
            tx.dirty = True

        message = f"Task {task.id} marked done." + self._propagation_message(req, outcome)
        return {
            "status": "task_marked_done",
            "requestId": req.request_id,
            "message": f"{message}\n{format_task_progress_table(req)}",
            "task": {
                "id": task.id,
                "title": task.title,
                "description": task.description,
                "status": task.status.value,
                "priority": task.priority.value,
                "dependsOn": list(task.depends_on),
                "completedDetails": task.completed_details,
            },
            "requestCompleted": req.completed,
        }

    def mark_task_failed(
        self,
        request_id: str,
        task_id: str,
        reason: Optional[str] = None,
    ) -> dict[str, Any]:
        with self.store.transaction() as tx:
            req = _require_request(tx.store, request_id)
            task = _require_task(req, task_id)
            if task.status == TaskStatus.DONE:
                return {
                    "status": "already_done",
                    "message": "Task is already marked done. Cannot mark a done task as failed.",
                }
            if task.is_terminal:
                return self._already_terminal(task)
            outcome = lifecycle.fail_task(req, task, reason)
            tx.dirty = True

        message = (
            f"Task {task.id} marked failed. Reason: {task.failure_reason}."
            + self._propagation_message(req, outcome)
        )
        return {
            "status": "task_marked_failed",
            "requestId": req.request_id,
            "message": f"{message}\n{format_task_progress_table(req)}",
            "task": {
                "id": task.id,
                "title": task.title,
                "description": task.description,
                "status": task.status.value,
                "priority": task.priority.value,
                "dependsOn": list(task.depends_on),
                "failureReason": task.failure_reason,
            },
            "requestCompleted": req.completed,
        }

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def open_task_details(self, task_id: str) -> dict[str, Any]:
        store = self.store.load()
        found = store.locate_task(task_id)
        if found is None:
            return {"status": "task_not_found", "message": "No such task found"}
        req, task = found
        return {
            "status": "task_details",
            "requestId": req.request_id,
            "originalRequest": req.original_request,
            "splitDetails": req.split_details,
            "completed": req.completed,
            "task": {
                "id": task.id,
                "title": task.title,
                "description": task.description,
                "status": task.status.value,
                "priority": task.priority.value,
                "dependsOn": list(task.depends_on),
                "parentId": task.parent_id,
                "subtaskIds": list(task.subtask_ids),
                "failureReason": task.failure_reason,
                "completedDetails": task.completed_details,
            },
        }

    def list_requests(self) -> dict[str, Any]:
        requests = self.store.load().all_requests()
        return {
            "status": "requests_listed",
            "message": f"Current requests in the system:\n{format_requests_list(requests)}",
            "requests": [
                {
                    "requestId": req.request_id,
                    "originalRequest": req.original_request,
                    "totalTasks": len(req.tasks),
                    "terminalTasks": req.terminal_count(),
                    "requestCompleted": req.completed,
                }
                for req in requests
            ],
        }

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def update_task(
        self,
        request_id: str,
        task_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        priority: PriorityLike = None,
    ) -> dict[str, Any]:
        new_priority = _coerce_priority(priority)
        with self.store.transaction() as tx:
            req = _require_request(tx.store, request_id)
            task = _require_task(req, task_id)
            lifecycle.ensure_editable(task)
            # empty strings leave the field unchanged
            if title:
                task.title = title
            if description:
                task.description = description
            if new_priority is not None:
                task.priority = new_priority
            tx.dirty = True

        return {
            "status": "task_updated",
            "message": f"Task {task_id} has been updated.\n{format_task_progress_table(req)}",
            "task": {
                "id": task.id,
                "title": task.title,
                "description": task.description,
                "priority": task.priority.value,
            },
        }

    # ------------------------------------------------------------------
    # Dependency management
    # ------------------------------------------------------------------

    def add_dependency(self, request_id: str, task_id: str, depends_on_task_id: str) -> dict[str, Any]:
        with self.store.transaction() as tx:
            req = _require_request(tx.store, request_id)
            task = _require_task(req, task_id, f"Task {task_id} not found")
            _require_task(req, depends_on_task_id, f"Dependency task {depends_on_task_id} not found")
            if task_id == depends_on_task_id:
                raise InvalidEditError("Task cannot depend on itself")
            if depends_on_task_id in task.depends_on:
                return {
                    "status": "no_change",
                    "message": f"Task {task_id} already depends on {depends_on_task_id}",
                }
            task.depends_on.append(depends_on_task_id)
            tx.dirty = True

        return {
            "status": "dependency_added",
            "message": f"Task {task_id} now depends on {depends_on_task_id}",
        }

    def remove_dependency(self, request_id: str, task_id: str, depends_on_task_id: str) -> dict[str, Any]:
        with self.store.transaction() as tx:
            req = _require_request(tx.store, request_id)
            task = _require_task(req, task_id, f"Task {task_id} not found")
            if depends_on_task_id not in task.depends_on:
                return {
                    "status": "no_change",
                    "message": f"Task {task_id} does not depend on {depends_on_task_id}",
                }
            task.depends_on = [d for d in task.depends_on if d != depends_on_task_id]
            tx.dirty = True

        return {
            "status": "dependency_removed",
            "message": f"Dependency of task {task_id} on {depends_on_task_id} removed",
        }

    def validate_dependencies(self, request_id: str) -> dict[str, Any]:
        req = _require_request(self.store.load(), request_id)
        report = validate_request(req)
        if report.passed:
            return {"status": "validation_passed", "issues": [], "message": "All dependencies are valid."}
        return {
            "status": "validation_failed",
            "issues": report.issues,
            "message": f"Found {len(report.issues)} dependency issues.",
        }

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    def add_subtask(
        self,
        request_id: str,
        parent_task_id: str,
        subtask_title: str,
        subtask_description: str,
        priority: PriorityLike = None,
        depends_on: Optional[Sequence[str]] = None,
    ) -> dict[str, Any]:
        new_priority = _coerce_priority(priority)
        with self.store.transaction() as tx:
            req = _require_request(tx.store, request_id)
            parent = _require_task(
                req, parent_task_id, f"Parent task {parent_task_id} not found in request {request_id}"
            )
            subtask = hierarchy.add_subtask(
                req,
                parent,
                tx.store.next_task_id(),
                subtask_title,
                subtask_description,
                priority=new_priority,
                depends_on=list(depends_on or []),
            )
            tx.dirty = True

        return {
            "status": "subtask_added",
            "parentTaskId": parent_task_id,
            "subtask": {**subtask.summary(), "parentId": subtask.parent_id},
            "message": (
                f"Subtask '{subtask.title}' added to parent '{parent.title}'.\n"
                f"{format_task_progress_table(req)}"
            ),
        }

    def delete_task(self, request_id: str, task_id: str) -> dict[str, Any]:
        with self.store.transaction() as tx:
            req = _require_request(tx.store, request_id)
            if not hierarchy.remove_subtree(req, task_id):
                raise NotFoundError("Task not found")
            lifecycle.refresh_request_completion(req)
            tx.dirty = True

        return {
            "status": "task_deleted",
            "message": (
                f"Task {task_id} and its descendants have been deleted.\n"
                f"{format_task_progress_table(req)}"
            ),
        }

    def remove_subtask(
        self,
        request_id: str,
        subtask_id: str,
        parent_task_id: Optional[str] = None,
    ) -> dict[str, Any]:
        with self.store.transaction() as tx:
            req = _require_request(tx.store, request_id)
            _require_task(req, subtask_id, f"Subtask {subtask_id} not found.")
            if parent_task_id:
                _require_task(req, parent_task_id, f"Specified parent task {parent_task_id} not found.")
                if not hierarchy.is_direct_subtask(req, parent_task_id, subtask_id):
                    raise InvalidEditError(
                        f"Task {subtask_id} is not a direct subtask of {parent_task_id}."
                    )
            hierarchy.remove_subtree(req, subtask_id)
            lifecycle.refresh_request_completion(req)
            tx.dirty = True

        return {
            "status": "subtask_removed",
            "message": (
                f"Subtask {subtask_id} and its descendants have been removed.\n"
                f"{format_task_progress_table(req)}"
            ),
        }
