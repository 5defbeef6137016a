# src/task_mirror/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the remote backend and wires cache/reconciler into AppState,
- opens and closes the group subscription.
"""

from __future__ import annotations

import logging

from ..config import BACKEND_FIRESTORE, get_settings
from ..core.ports import RemoteTaskStore
from ..core.state import AppState
from ..remote.firestore_rest import FirestoreRestTaskStore
from ..remote.sqlite_store import SQLiteRemoteTaskStore
from ..tasks.reconciler import TaskReconciler
from ..tasks.subscription import SubscriptionResult, subscribe_group
from ..tasks.task_cache import TaskCache

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_remote_store(settings) -> RemoteTaskStore:
    if settings.backend == BACKEND_FIRESTORE:
        if not settings.firestore_project_id:
            raise RuntimeError("Firestore backend selected but TASKMIRROR_FIRESTORE_PROJECT_ID is not set.")
        return FirestoreRestTaskStore(
            project_id=settings.firestore_project_id,
            database=settings.firestore_database,
            collection=settings.firestore_collection,
            base_url=settings.firestore_base_url,
            token=settings.firestore_token,
            timeout_seconds=settings.http_timeout_seconds,
            poll_interval_seconds=settings.poll_interval_seconds,
        )

    return SQLiteRemoteTaskStore(settings.db_path, poll_interval_seconds=settings.poll_interval_seconds)


def create_initial_state(*, settings=None, remote: RemoteTaskStore | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings/remote injectable makes the app easier to test and avoids hidden global reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    if remote is None:
        _ensure_local_dirs(settings)
        remote = create_remote_store(settings)

    cache = TaskCache()
    return AppState(
        settings=settings,
        remote=remote,
        cache=cache,
        reconciler=TaskReconciler(cache, remote, strict=bool(getattr(settings, "strict_writes", False))),
    )


async def switch_group(state: AppState, group_code: str) -> SubscriptionResult:
    """
    Stop the current subscription (if any) and subscribe to group_code.

    On failure the cache keeps whatever it held before and the failed result is stored on state.
    """
    if state.subscription is not None:
        state.subscription.cancel()

    result = await subscribe_group(state.cache, state.remote, group_code)
    state.subscription = result
    if not result.ok:
        logger.warning("Subscription to group %s failed: %s", group_code, result.error)
    return result


async def shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    if state.subscription is not None:
        try:
            state.subscription.cancel()
        except Exception:
            logger.exception("Failed to cancel subscription.")

    try:
        await state.remote.aclose()
    except Exception:
        logger.debug("Remote store close failed.", exc_info=True)
