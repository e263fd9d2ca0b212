"""In-memory entity store and its file-backed persistence.

The whole store (every request with its flat task list, plus the two id
counters) lives in a single JSON or YAML document. Every engine call goes
through :meth:`TaskStore.transaction`, which reloads the document, yields
the snapshot, and writes it back only if the block finished cleanly and
marked itself dirty.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Optional

from loguru import logger

from ..constants import REQUEST_ID_PREFIX, TASK_ID_PREFIX
from ..io_utils import _load_data_with_error, _save_data
from .errors import StorageError
from .model import Request, Task, parse_id_number


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

@dataclass
class Store:
    """Ordered requests plus the monotonic id counters."""

    requests: list[Request] = field(default_factory=list)
    last_request_id: int = 0
    last_task_id: int = 0

    # -- lookups ------------------------------------------------------------

    def find(self, request_id: str) -> Optional[Request]:
        for req in self.requests:
            if req.request_id == request_id:
                return req
        return None

    def find_task(self, request_id: str, task_id: str) -> Optional[Task]:
        req = self.find(request_id)
        return req.get_task(task_id) if req is not None else None

    def locate_task(self, task_id: str) -> Optional[tuple[Request, Task]]:
        """Find a task anywhere in the store, with the request that owns it."""
        for req in self.requests:
            task = req.get_task(task_id)
            if task is not None:
                return req, task
        return None

    def all_requests(self) -> list[Request]:
        return list(self.requests)

    # -- id assignment ------------------------------------------------------

    def next_request_id(self) -> str:
        self.last_request_id += 1
        return f"{REQUEST_ID_PREFIX}{self.last_request_id}"

    def next_task_id(self) -> str:
        self.last_task_id += 1
        return f"{TASK_ID_PREFIX}{self.last_task_id}"

    # -- serialization ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "requests": [r.to_dict() for r in self.requests],
            "metadata": {
                "lastRequestId": self.last_request_id,
                "lastTaskId": self.last_task_id,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Store":
        raw = data.get("requests")
        requests = [
            Request.from_dict(item)
            for item in (raw if isinstance(raw, list) else [])
            if isinstance(item, dict)
        ]
        store = cls(requests=requests)

        scanned_request, scanned_task = _scan_counters(requests)
        counters = _read_counters(data.get("metadata"))
        if counters is None:
            store.last_request_id, store.last_task_id = scanned_request, scanned_task
        else:
            # never hand out an id that is already in the document
            store.last_request_id = max(counters[0], scanned_request)
            store.last_task_id = max(counters[1], scanned_task)
        return store


def _read_counters(metadata: Any) -> Optional[tuple[int, int]]:
    if not isinstance(metadata, dict):
        return None
    last_request = metadata.get("lastRequestId")
    last_task = metadata.get("lastTaskId")
    # bool is an int subclass; a flag is not a counter
    for value in (last_request, last_task):
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            return None
    return last_request, last_task


def _scan_counters(requests: list[Request]) -> tuple[int, int]:
    """Recover both counters from the highest numeric id suffix in use."""
    max_request = 0
    max_task = 0
    for req in requests:
        num = parse_id_number(req.request_id, REQUEST_ID_PREFIX)
        if num is not None:
            max_request = max(max_request, num)
        for task in req.tasks:
            tnum = parse_id_number(task.id, TASK_ID_PREFIX)
            if tnum is not None:
                max_task = max(max_task, tnum)
    return max_request, max_task


# ---------------------------------------------------------------------------
# TaskStore
# ---------------------------------------------------------------------------

class TaskStore:
    """File-backed persistence for a :class:`Store`.

    Parameters
    ----------
    path:
        The ``.json`` (or ``.yaml``) document holding every request.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Store:
        """Read the document; an unreadable or missing file yields an empty store."""
        data, err = _load_data_with_error(self.path, {})
        if err:
            logger.warning("Could not read task file, starting empty: {}", err)
            return Store()
        return Store.from_dict(data)

    def save(self, store: Store) -> None:
        try:
            _save_data(self.path, store.to_dict())
        except OSError as exc:
            logger.error("Cannot save tasks to {}: {}", self.path, exc)
            raise StorageError(f"Cannot save tasks to {self.path}: {exc}") from exc

    @contextmanager
    def transaction(self) -> Iterator[_StoreTx]:
        """Load the store, yield a transaction, and save it if it was changed.

        Usage::

            with task_store.transaction() as tx:
                req = tx.store.find("req-1")
                req.completed = True
                tx.dirty = True
        """
        tx = _StoreTx(self.load())
        yield tx
        if tx.dirty:
            self.save(tx.store)


class _StoreTx:
    """One reload-edit-save cycle over a store snapshot."""

    def __init__(self, store: Store) -> None:
        self.store = store
        self.dirty = False
