"""Dependency validation with cycle detection.

Pure functions over a single request's tasks. A dependency on an id that is
not in the request is never an error here: it counts as unmet for
scheduling and is reported as an issue by :func:`validate_request`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Mapping, Optional

from .model import Request, Task, TaskStatus


@dataclass
class ValidationReport:
    """Outcome of :func:`validate_request`."""

    issues: list[str] = field(default_factory=list)
    cyclic: bool = False

    @property
    def passed(self) -> bool:
        return not self.issues


def unmet_dependencies(task: Task, task_map: Mapping[str, Task]) -> list[str]:
    """Ids in ``task.depends_on`` that are missing or not yet done."""
    unmet: list[str] = []
    for dep_id in task.depends_on:
        dep = task_map.get(dep_id)
        if dep is None or dep.status != TaskStatus.DONE:
            unmet.append(dep_id)
    return unmet


def dependencies_met(task: Task, task_map: Mapping[str, Task]) -> bool:
    return not unmet_dependencies(task, task_map)


def find_dangling(request: Request) -> list[str]:
    task_ids = {t.id for t in request.tasks}
    issues: list[str] = []
    for task in request.tasks:
        for dep_id in task.depends_on:
            if dep_id not in task_ids:
                issues.append(f"Task {task.id} depends on non-existent task {dep_id}.")
    return issues


def find_first_cycle(request: Request) -> Optional[str]:
    """Depth-first search over ``depends_on`` edges, stopping at the first back edge.

    Roots are visited in task order and edges in ``depends_on`` order, so the
    reported cycle is stable for a given document. Edges to unknown ids are
    skipped.
    """
    task_map = request.task_map()
    visited: set[str] = set()
    on_stack: set[str] = set()

    for root in request.tasks:
        if root.id in visited:
            continue
        visited.add(root.id)
        on_stack.add(root.id)
        stack: list[tuple[str, Iterator[str]]] = [(root.id, iter(root.depends_on))]

        while stack:
            node_id, edges = stack[-1]
            advanced = False
            for dep_id in edges:
                if dep_id not in task_map:
                    continue
                if dep_id in on_stack:
                    return f"Circular dependency detected: {node_id} -> ... -> {dep_id} -> {node_id}"
                if dep_id not in visited:
                    visited.add(dep_id)
                    on_stack.add(dep_id)
                    stack.append((dep_id, iter(task_map[dep_id].depends_on)))
                    advanced = True
                    break
            if not advanced:
                stack.pop()
                on_stack.discard(node_id)
    return None


def validate_request(request: Request) -> ValidationReport:
    """Report dangling references and the first dependency cycle found."""
    issues = find_dangling(request)
    cycle = find_first_cycle(request)
    if cycle is not None:
        issues.append(cycle)
    # de-duplicate, keeping first-seen order
    return ValidationReport(issues=list(dict.fromkeys(issues)), cyclic=cycle is not None)
