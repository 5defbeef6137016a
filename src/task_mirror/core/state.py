# src/task_mirror/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..tasks.reconciler import TaskReconciler
from ..tasks.subscription import SubscriptionResult
from ..tasks.task_cache import TaskCache
from .ports import RemoteTaskStore


@dataclass
class AppState:
    """Everything a front-end needs, wired once by the composition root (no module globals)."""

    settings: object
    remote: RemoteTaskStore
    cache: TaskCache
    reconciler: TaskReconciler

    subscription: SubscriptionResult | None = None

    @property
    def group_code(self) -> str | None:
        return None if self.subscription is None else self.subscription.group_code
