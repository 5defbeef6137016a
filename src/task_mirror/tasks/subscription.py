# src/task_mirror/tasks/subscription.py

from __future__ import annotations

"""
Group subscription.

Keeps a TaskCache as a live view of one group's tasks:
- every delivery fully replaces the cache (no diffing, no merge)
- setup failure is returned as a failed SubscriptionResult, never a silent no-op
- no reconnection: callers decide whether to subscribe again
"""

import logging
from dataclasses import dataclass

from ..core.ports import RemoteDocument, RemoteTaskStore, Subscription
from .task_cache import TaskCache
from .task_models import Task

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SubscriptionResult:
    """
    Outcome of subscribe_group().

    ok=True  -> handle is live; cancel() stops delivery
    ok=False -> error says why; cancel() is a no-op
    """

    group_code: str
    handle: Subscription | None = None
    error: Exception | None = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.handle is not None and self.error is None

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self.handle is None:
            return
        self.handle.cancel()
        logger.info("Subscription cancelled group=%s", self.group_code)


def apply_snapshot(cache: TaskCache, docs: list[RemoteDocument]) -> None:
    """Map a delivered snapshot and replace the cache with it, in delivery order."""
    cache.replace_all(Task.from_remote(d.id, d.data) for d in docs)
    logger.info("Got %d tasks from remote store", len(docs))


async def subscribe_group(
        cache: TaskCache,
        remote: RemoteTaskStore,
        group_code: str,
) -> SubscriptionResult:
    """
    Open a standing subscription to all tasks whose groupCode equals group_code.

    On failure the cache keeps its prior contents and the error is returned, not raised.
    """
    if not group_code or not group_code.strip():
        raise ValueError("group_code is required")

    logger.info("Subscribing to tasks for group code: %s", group_code)

    def _on_snapshot(docs: list[RemoteDocument]) -> None:
        apply_snapshot(cache, docs)

    def _on_error(exc: Exception) -> None:
        logger.warning("Subscription delivery error group=%s: %s", group_code, exc)

    try:
        handle = await remote.subscribe(group_code, _on_snapshot, _on_error)
    except Exception as e:
        logger.error("Error setting up tasks subscription group=%s: %s", group_code, e)
        return SubscriptionResult(group_code=group_code, error=e)

    return SubscriptionResult(group_code=group_code, handle=handle)
