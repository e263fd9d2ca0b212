"""Provide the public `task_manager_mcp` package exports."""

from __future__ import annotations

from .task_engine.engine import TaskEngine
from .task_engine.store import TaskStore

__all__ = ["TaskEngine", "TaskStore"]

__version__ = "2.0.1"
