"""Pydantic argument models for every tool.

Field names follow the camelCase used on the wire so the generated JSON
schemas can be handed to MCP clients as-is.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ..task_engine.model import TaskSpec, TaskPriority


class Priority(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


class TaskDefinition(BaseModel):
    title: str
    description: str
    priority: Optional[Priority] = None
    dependsOn: Optional[list[str]] = None

    def to_spec(self) -> TaskSpec:
        return TaskSpec(
            title=self.title,
            description=self.description,
            priority=TaskPriority(self.priority.value) if self.priority else None,
            depends_on=list(self.dependsOn or []),
        )


class RequestPlanningArgs(BaseModel):
    originalRequest: str
    splitDetails: Optional[str] = None
    tasks: list[TaskDefinition]


class GetNextTaskArgs(BaseModel):
    requestId: str


class MarkTaskDoneArgs(BaseModel):
    requestId: str
    taskId: str
    completedDetails: Optional[str] = None


class MarkTaskFailedArgs(BaseModel):
    requestId: str
    taskId: str
    reason: Optional[str] = None


class OpenTaskDetailsArgs(BaseModel):
    taskId: str


class ListRequestsArgs(BaseModel):
    pass


class AddTasksToRequestArgs(BaseModel):
    requestId: str
    tasks: list[TaskDefinition]


class UpdateTaskArgs(BaseModel):
    requestId: str
    taskId: str
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None


class AddDependencyArgs(BaseModel):
    requestId: str
    taskId: str
    dependsOnTaskId: str


class RemoveDependencyArgs(BaseModel):
    requestId: str
    taskId: str
    dependsOnTaskId: str


class ValidateDependenciesArgs(BaseModel):
    requestId: str


class DeleteTaskArgs(BaseModel):
    requestId: str
    taskId: str


class AddSubtaskArgs(BaseModel):
    requestId: str
    parentTaskId: str
    subtaskTitle: str
    subtaskDescription: str
    priority: Optional[Priority] = None
    dependsOn: Optional[list[str]] = None


class RemoveSubtaskArgs(BaseModel):
    requestId: str
    subtaskId: str
    parentTaskId: Optional[str] = Field(
        default=None,
        description="When given, the subtask must be a direct child of this task.",
    )
