# tests/conftest.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from task_mirror.cli.bootstrap import create_initial_state
from task_mirror.core.state import AppState
from task_mirror.tasks.reconciler import TaskReconciler
from task_mirror.tasks.task_cache import TaskCache

from .fakes import FakeRemoteStore, make_task


@pytest.fixture()
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture()
def cache() -> TaskCache:
    return TaskCache([make_task("1"), make_task("2", name="Second", priority="Low")])


@pytest.fixture()
def reconciler(cache: TaskCache, remote: FakeRemoteStore) -> TaskReconciler:
    return TaskReconciler(cache, remote)


@pytest.fixture()
def settings() -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI helpers.

    We intentionally use a SimpleNamespace rather than reading real env config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(app_name="task-mirror-test", strict_writes=False, group_code="g1")


@pytest.fixture()
def state(settings: SimpleNamespace, remote: FakeRemoteStore) -> AppState:
    return create_initial_state(settings=settings, remote=remote)
