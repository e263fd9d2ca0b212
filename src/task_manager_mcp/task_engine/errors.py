"""Exceptions raised by the task engine.

Engine errors are expected outcomes of bad input (unknown ids, edits on
terminal tasks) and are turned into tagged ``error`` results at the tool
boundary. :class:`StorageError` is not: it means the store could not be
written and is propagated to the caller.
"""

from __future__ import annotations


class TaskEngineError(ValueError):
    """Base class for errors reported back to the caller as a result."""


class NotFoundError(TaskEngineError):
    """An unknown request or task id."""


class InvalidStateError(TaskEngineError):
    """The entity's lifecycle state does not allow the operation."""


class InvalidEditError(TaskEngineError):
    """A structural edit that would break an invariant (e.g. self-dependency)."""


class StorageError(RuntimeError):
    """The persistence target could not be written."""
