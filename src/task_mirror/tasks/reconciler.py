# src/task_mirror/tasks/reconciler.py

from __future__ import annotations

"""
Optimistic task mutations.

Every field mutation runs the same protocol:
  locate -> snapshot -> apply locally -> write remotely -> (on failure) roll back

Rollback is a field-level patch on whatever record currently holds the id, so a
rollback never undoes a concurrent mutation of other fields, and a subscription
delivery that lands mid-flight is overwritten only if the failure lands after it.

Delete is confirm-first: the cache is touched only after the remote delete succeeds.
"""

import asyncio
import logging
from typing import Any

from ..core.ports import RemoteTaskStore
from .task_cache import TaskCache
from .task_models import (
    FIELD_ASSIGNED_TO,
    FIELD_ASSIGNED_USER_ID,
    FIELD_IS_FAVORITE,
    FIELD_NAME,
    FIELD_PRIORITY,
    FIELD_STATUS,
    FIELD_UPDATED_AT,
    FailurePolicy,
)

logger = logging.getLogger(__name__)


class TaskReconciler:
    """
    Mutation operations over an injected cache and remote store.

    Return value of field mutations:
      True  -> applied and confirmed remotely
      False -> task not cached (nothing done), or write failed and the error was swallowed

    strict=True makes every operation re-raise remote failures (after rollback).
    """

    def __init__(self, cache: TaskCache, remote: RemoteTaskStore, *, strict: bool = False) -> None:
        self.cache = cache
        self.remote = remote
        self.strict = strict

    # ---- operations ----

    async def set_status(self, task_id: str, status: str) -> bool:
        return await self._apply_optimistic(
            "status",
            task_id,
            local={"status": status},
            remote={FIELD_STATUS: status},
            policy=FailurePolicy.SWALLOW,
        )

    async def set_priority(self, task_id: str, priority: str | None) -> bool:
        return await self._apply_optimistic(
            "priority",
            task_id,
            local={"priority": priority},
            remote={FIELD_PRIORITY: priority, FIELD_UPDATED_AT: self.remote.server_timestamp()},
            policy=FailurePolicy.RAISE,
        )

    async def set_name(self, task_id: str, name: str) -> bool:
        return await self._apply_optimistic(
            "name",
            task_id,
            local={"name": name},
            remote={FIELD_NAME: name},
            policy=FailurePolicy.SWALLOW,
        )

    async def set_favorite(self, task_id: str, is_favorite: bool) -> bool:
        return await self._apply_optimistic(
            "favorite",
            task_id,
            local={"is_favorite": bool(is_favorite)},
            remote={FIELD_IS_FAVORITE: bool(is_favorite)},
            policy=FailurePolicy.SWALLOW,
        )

    async def assign_user(self, task_id: str, user_id: str) -> bool:
        """Assign a user; persisted under the legacy assignedUserId field."""
        return await self._apply_optimistic(
            "assign",
            task_id,
            local={"assigned_to": user_id},
            remote={FIELD_ASSIGNED_USER_ID: user_id},
            policy=FailurePolicy.SWALLOW,
        )

    async def set_assignment(self, task_id: str, user_id: str | None) -> bool:
        """
        Assign or clear (user_id=None) the assignee; persisted as assignedTo + updatedAt.

        An uncached id is still written remotely (remote is authoritative); the cache is
        left alone and a failed write is re-raised.
        """
        remote = {FIELD_ASSIGNED_TO: user_id, FIELD_UPDATED_AT: self.remote.server_timestamp()}

        if self.cache.get(task_id) is None:
            logger.warning("Task %s not cached; writing assignment remotely only", task_id)
            try:
                await self.remote.write_fields(task_id, remote)
            except Exception:
                logger.exception("Error updating task assignment %s", task_id)
                raise
            return True

        return await self._apply_optimistic(
            "assignment",
            task_id,
            local={"assigned_to": user_id},
            remote=remote,
            policy=FailurePolicy.RAISE,
        )

    async def delete_task(self, task_id: str) -> bool:
        """
        Delete remotely, then drop from the cache.

        The remote delete is issued even when the id is not cached (remote is authoritative).
        On failure the cache is unchanged and the error is re-raised.
        """
        try:
            await self.remote.delete_record(task_id)
        except Exception:
            logger.exception("Error deleting task %s", task_id)
            raise

        removed = self.cache.remove(task_id)
        logger.info("Task %s deleted successfully (cached=%s).", task_id, removed)
        return True

    # ---- protocol ----

    async def _apply_optimistic(
            self,
            op: str,
            task_id: str,
            *,
            local: dict[str, Any],
            remote: dict[str, Any],
            policy: FailurePolicy,
    ) -> bool:
        current = self.cache.get(task_id)
        if current is None:
            logger.warning("Task not found: %s (op=%s)", task_id, op)
            return False

        previous = {name: getattr(current, name) for name in local}
        self.cache.patch(task_id, **local)

        try:
            await self.remote.write_fields(task_id, remote)
        except asyncio.CancelledError:
            self._rollback(op, task_id, previous)
            raise
        except Exception:
            logger.exception("Error updating task %s (op=%s); rolling back", task_id, op)
            self._rollback(op, task_id, previous)
            if self.strict or policy is FailurePolicy.RAISE:
                raise
            return False

        logger.info("Task %s %s updated to %r.", task_id, op, _display(local))
        return True

    def _rollback(self, op: str, task_id: str, previous: dict[str, Any]) -> None:
        if self.cache.patch(task_id, **previous) is None:
            # Gone from the cache (a delivery dropped it): nothing to restore.
            logger.debug("Rollback skipped, task %s no longer cached (op=%s)", task_id, op)


def _display(values: dict[str, Any]) -> Any:
    if len(values) == 1:
        return next(iter(values.values()))
    return values
