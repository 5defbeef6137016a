# src/task_mirror/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The cache/reconciler depend on Protocols instead of concrete stores.
This keeps the remote backend swappable (SQLite, Firestore REST, test fakes).
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class RemoteDocument:
    """One record as delivered by the remote store: id + raw (camelCase) fields."""

    id: str
    data: dict[str, Any] = field(default_factory=dict)


SnapshotCallback = Callable[[list[RemoteDocument]], None]
ErrorCallback = Callable[[Exception], None]


class Subscription(Protocol):
    """Cancellation handle for a standing subscription."""

    def cancel(self) -> None: ...


class RemoteTaskStore(Protocol):
    """
    Remote source of truth for tasks.

    subscribe() delivers the full matching set on every change (not diffs) and raises
    RemoteStoreError/SubscriptionError when the stream cannot be established.
    write_fields() is a partial update of exactly the given fields; it must fail for a
    record that does not exist.
    """

    async def subscribe(
            self,
            group_code: str,
            on_snapshot: SnapshotCallback,
            on_error: ErrorCallback | None = None,
    ) -> Subscription: ...

    async def write_fields(self, task_id: str, fields: dict[str, Any]) -> None: ...

    async def delete_record(self, task_id: str) -> None: ...

    def server_timestamp(self) -> Any: ...

    # Record creation is only used by the console front-end; the cache never originates tasks.
    async def create_record(self, fields: dict[str, Any]) -> str: ...

    async def aclose(self) -> None: ...
