"""Request and task model for the task engine.

Requests own a flat list of tasks; the hierarchy is expressed only through
``parent_id`` / ``subtask_ids`` back-references. Both classes serialize to the
camelCase layout of the persisted document (``dependsOn``, ``subtaskIds``,
``requestId`` ...), so files written by earlier versions of the server load
unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..constants import REQUEST_ID_PREFIX, TASK_ID_PREFIX
from .errors import InvalidEditError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Lifecycle status of a task."""

    PENDING = "pending"
    ACTIVE = "active"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.DONE, TaskStatus.FAILED)


class TaskPriority(str, Enum):
    """Scheduling priority, ``high`` first."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def sort_key(self) -> int:
        return {"high": 0, "medium": 1, "low": 2}[self.value]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def parse_id_number(entity_id: str, prefix: str) -> Optional[int]:
    """Return the numeric suffix of ``<prefix><n>`` ids, or None."""
    if not isinstance(entity_id, str) or not entity_id.startswith(prefix):
        return None
    try:
        return int(entity_id[len(prefix):])
    except ValueError:
        return None


def _coerce_enum(enum_cls: type[Enum], raw: Any, default: Enum) -> Any:
    if raw is None:
        return default
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except ValueError:
        return default


def _str_list(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [str(item) for item in raw]


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A single unit of work inside a request."""

    id: str
    title: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM

    # Dependencies (ids within the same request)
    depends_on: list[str] = field(default_factory=list)

    # Hierarchy
    parent_id: Optional[str] = None
    subtask_ids: list[str] = field(default_factory=list)

    # Outcome
    failure_reason: Optional[str] = None
    completed_details: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def number(self) -> int:
        """Numeric id suffix used as the deterministic tie-break."""
        num = parse_id_number(self.id, TASK_ID_PREFIX)
        return num if num is not None else 0

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "dependsOn": list(self.depends_on),
        }
        if self.parent_id is not None:
            data["parentId"] = self.parent_id
        data["subtaskIds"] = list(self.subtask_ids)
        if self.failure_reason is not None:
            data["failureReason"] = self.failure_reason
        data["completedDetails"] = self.completed_details
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        parent_id = data.get("parentId")
        failure_reason = data.get("failureReason")
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "") or ""),
            description=str(data.get("description", "") or ""),
            status=_coerce_enum(TaskStatus, data.get("status"), TaskStatus.PENDING),
            priority=_coerce_enum(TaskPriority, data.get("priority"), TaskPriority.MEDIUM),
            depends_on=_str_list(data.get("dependsOn")),
            parent_id=str(parent_id) if parent_id else None,
            subtask_ids=_str_list(data.get("subtaskIds")),
            failure_reason=str(failure_reason) if failure_reason is not None else None,
            completed_details=str(data.get("completedDetails", "") or ""),
        )

    def summary(self) -> dict[str, Any]:
        """The short snapshot returned when tasks are created."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "dependsOn": list(self.depends_on),
        }


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

@dataclass
class Request:
    """A user request and the flat list of every task planned for it."""

    request_id: str
    original_request: str = ""
    split_details: str = ""
    tasks: list[Task] = field(default_factory=list)
    completed: bool = False

    @property
    def number(self) -> int:
        num = parse_id_number(self.request_id, REQUEST_ID_PREFIX)
        return num if num is not None else 0

    def task_map(self) -> dict[str, Task]:
        return {t.id: t for t in self.tasks}

    def get_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def all_terminal(self) -> bool:
        return all(t.is_terminal for t in self.tasks)

    def terminal_count(self) -> int:
        return sum(1 for t in self.tasks if t.is_terminal)

    def to_dict(self) -> dict[str, Any]:
        return {
            "requestId": self.request_id,
            "originalRequest": self.original_request,
            "splitDetails": self.split_details,
            "tasks": [t.to_dict() for t in self.tasks],
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Request":
        raw_tasks = data.get("tasks")
        tasks = [
            Task.from_dict(item)
            for item in (raw_tasks if isinstance(raw_tasks, list) else [])
            if isinstance(item, dict)
        ]
        return cls(
            request_id=str(data.get("requestId", "")),
            original_request=str(data.get("originalRequest", "") or ""),
            split_details=str(data.get("splitDetails", "") or ""),
            tasks=tasks,
            completed=bool(data.get("completed", False)),
        )


# ---------------------------------------------------------------------------
# Task specs (input to planning operations)
# ---------------------------------------------------------------------------

@dataclass
class TaskSpec:
    """What a caller supplies to plan a new task."""

    title: str
    description: str = ""
    priority: Optional[TaskPriority] = None
    depends_on: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskSpec":
        raw_priority = data.get("priority")
        try:
            priority = TaskPriority(raw_priority) if raw_priority else None
        except ValueError as exc:
            raise InvalidEditError(f"Invalid priority '{raw_priority}'") from exc
        return cls(
            title=str(data.get("title", "") or ""),
            description=str(data.get("description", "") or ""),
            priority=priority,
            depends_on=_str_list(data.get("dependsOn", data.get("depends_on"))),
        )
