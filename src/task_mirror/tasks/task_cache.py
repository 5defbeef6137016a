# src/task_mirror/tasks/task_cache.py

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import replace
from typing import Any

from .task_models import IMMUTABLE_FIELDS, Task

logger = logging.getLogger(__name__)

CacheListener = Callable[[tuple[Task, ...]], None]


class TaskCache:
    """
    In-memory ordered view of one group's tasks.

    Mutations never edit a record in place:
    - replace_all builds the new list first, then swaps it in with one assignment
    - patch builds a new record with dataclasses.replace and stores it at the record's
      current position (looked up by id every time, never by a remembered index)

    Listeners are called after every change with the new snapshot.
    """

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._tasks: list[Task] = self._dedupe(tasks)
        self._listeners: list[CacheListener] = []

    # ---- read side ----

    @property
    def tasks(self) -> tuple[Task, ...]:
        return tuple(self._tasks)

    def get(self, task_id: str) -> Task | None:
        idx = self._index_of(task_id)
        return None if idx is None else self._tasks[idx]

    def __contains__(self, task_id: object) -> bool:
        return isinstance(task_id, str) and self._index_of(task_id) is not None

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(self.tasks)

    def add_listener(self, listener: CacheListener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # ---- write side ----

    def replace_all(self, tasks: Iterable[Task]) -> None:
        self._tasks = self._dedupe(tasks)
        logger.debug("Cache replaced: %d tasks", len(self._tasks))
        self._notify()

    def patch(self, task_id: str, **fields: Any) -> Task | None:
        """
        Overwrite the given fields of one record.

        Returns the new record, or None when the id is not cached.
        """
        bad = IMMUTABLE_FIELDS.intersection(fields)
        if bad:
            raise ValueError(f"immutable task fields: {', '.join(sorted(bad))}")

        idx = self._index_of(task_id)
        if idx is None:
            return None

        updated = replace(self._tasks[idx], **fields)
        self._tasks[idx] = updated
        self._notify()
        return updated

    def remove(self, task_id: str) -> bool:
        idx = self._index_of(task_id)
        if idx is None:
            return False
        self._tasks = self._tasks[:idx] + self._tasks[idx + 1 :]
        self._notify()
        return True

    # ---- helpers ----

    def _index_of(self, task_id: str) -> int | None:
        for i, t in enumerate(self._tasks):
            if t.id == task_id:
                return i
        return None

    @staticmethod
    def _dedupe(tasks: Iterable[Task]) -> list[Task]:
        out: list[Task] = []
        seen: set[str] = set()
        for t in tasks:
            if t.id in seen:
                logger.warning("Duplicate task id in delivery, keeping first: %s", t.id)
                continue
            seen.add(t.id)
            out.append(t)
        return out

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.tasks
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Cache listener failed")
