# src/task_mirror/errors.py

from __future__ import annotations


class TaskMirrorError(Exception):
    """Base class for task-mirror errors."""


class RemoteStoreError(TaskMirrorError):
    """
    The remote store rejected an operation (permission, connectivity, validation, missing record).

    status_code is the transport status when one is known (HTTP adapters), else None.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SubscriptionError(RemoteStoreError):
    """A standing subscription could not be established."""
