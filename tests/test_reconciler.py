# tests/test_reconciler.py

from __future__ import annotations

import asyncio

import pytest

from task_mirror.errors import RemoteStoreError
from task_mirror.remote.common import SERVER_TIMESTAMP
from task_mirror.tasks.reconciler import TaskReconciler
from task_mirror.tasks.subscription import subscribe_group
from task_mirror.tasks.task_cache import TaskCache

from .fakes import FakeRemoteStore, doc, make_task, settle


@pytest.mark.asyncio
async def test_set_status_is_visible_before_remote_confirms(cache, remote, reconciler) -> None:
    remote.gate = asyncio.Event()

    call = asyncio.create_task(reconciler.set_status("1", "In Progress"))
    await settle()

    assert cache.get("1").status == "In Progress"
    assert not call.done()

    remote.gate.set()
    assert await call is True
    assert cache.get("1").status == "In Progress"
    assert remote.writes == [("1", {"status": "In Progress"})]


@pytest.mark.asyncio
async def test_set_status_failure_rolls_back_and_is_swallowed(cache, remote, reconciler) -> None:
    remote.write_error = RemoteStoreError("permission denied")

    assert await reconciler.set_status("1", "Done") is False
    assert cache.get("1").status == "To Do"


@pytest.mark.asyncio
async def test_set_priority_scenario_rollback_and_rejection(remote) -> None:
    cache = TaskCache([make_task("1", status="To Do", priority=None)])
    reconciler = TaskReconciler(cache, remote)
    remote.gate = asyncio.Event()
    remote.write_error = RemoteStoreError("offline")

    call = asyncio.create_task(reconciler.set_priority("1", "High"))
    await settle()
    assert cache.get("1").priority == "High"

    remote.gate.set()
    with pytest.raises(RemoteStoreError):
        await call
    assert cache.get("1").priority is None


@pytest.mark.asyncio
async def test_set_priority_writes_server_timestamp(cache, remote, reconciler) -> None:
    assert await reconciler.set_priority("2", None) is True

    assert cache.get("2").priority is None
    assert remote.writes == [("2", {"priority": None, "updatedAt": SERVER_TIMESTAMP})]


@pytest.mark.asyncio
async def test_set_name_and_favorite(cache, remote, reconciler) -> None:
    assert await reconciler.set_name("1", "Renamed") is True
    assert await reconciler.set_favorite("1", True) is True

    task = cache.get("1")
    assert task.name == "Renamed"
    assert task.is_favorite is True
    assert remote.writes == [("1", {"name": "Renamed"}), ("1", {"isFavorite": True})]


@pytest.mark.asyncio
async def test_set_name_and_favorite_failures_roll_back_quietly(cache, remote, reconciler) -> None:
    remote.write_error = RemoteStoreError("validation failed")

    assert await reconciler.set_name("1", "Renamed") is False
    assert await reconciler.set_favorite("1", True) is False

    task = cache.get("1")
    assert task.name == "Task 1"
    assert task.is_favorite is False


@pytest.mark.asyncio
async def test_assign_user_writes_assigned_user_id(cache, remote, reconciler) -> None:
    assert await reconciler.assign_user("1", "u42") is True

    assert cache.get("1").assigned_to == "u42"
    assert remote.writes == [("1", {"assignedUserId": "u42"})]


@pytest.mark.asyncio
async def test_assign_user_failure_is_swallowed(cache, remote, reconciler) -> None:
    remote.write_error = RemoteStoreError("denied")

    assert await reconciler.assign_user("1", "u42") is False
    assert cache.get("1").assigned_to is None


@pytest.mark.asyncio
async def test_set_assignment_writes_assigned_to_and_can_clear(remote) -> None:
    cache = TaskCache([make_task("1", assigned_to="u1")])
    reconciler = TaskReconciler(cache, remote)

    assert await reconciler.set_assignment("1", None) is True

    assert cache.get("1").assigned_to is None
    assert remote.writes == [("1", {"assignedTo": None, "updatedAt": SERVER_TIMESTAMP})]


@pytest.mark.asyncio
async def test_set_assignment_failure_rolls_back_and_raises(remote) -> None:
    cache = TaskCache([make_task("1", assigned_to="u1")])
    reconciler = TaskReconciler(cache, remote)
    remote.gate = asyncio.Event()
    remote.write_error = RemoteStoreError("denied")

    call = asyncio.create_task(reconciler.set_assignment("1", "u2"))
    await settle()
    assert cache.get("1").assigned_to == "u2"

    remote.gate.set()
    with pytest.raises(RemoteStoreError):
        await call
    assert cache.get("1").assigned_to == "u1"


@pytest.mark.asyncio
async def test_delete_removes_only_after_remote_success(cache, remote, reconciler) -> None:
    remote.gate = asyncio.Event()

    call = asyncio.create_task(reconciler.delete_task("1"))
    await settle()
    assert "1" in cache

    remote.gate.set()
    assert await call is True
    assert "1" not in cache
    assert [t.id for t in cache.tasks] == ["2"]


@pytest.mark.asyncio
async def test_delete_failure_keeps_task_and_raises(cache, remote, reconciler) -> None:
    remote.delete_error = RemoteStoreError("denied")

    with pytest.raises(RemoteStoreError):
        await reconciler.delete_task("1")
    assert "1" in cache
    assert len(cache) == 2


@pytest.mark.asyncio
async def test_delete_of_uncached_id_still_hits_remote(cache, remote, reconciler) -> None:
    before = cache.tasks

    assert await reconciler.delete_task("missing") is True

    assert remote.deletes == ["missing"]
    assert cache.tasks == before


@pytest.mark.asyncio
async def test_field_mutations_on_missing_id_are_noops(cache, remote, reconciler) -> None:
    before = cache.tasks

    assert await reconciler.set_status("missing", "Done") is False
    assert await reconciler.set_priority("missing", "High") is False
    assert await reconciler.set_name("missing", "x") is False
    assert await reconciler.set_favorite("missing", True) is False
    assert await reconciler.assign_user("missing", "u1") is False

    assert cache.tasks == before
    assert remote.writes == []


@pytest.mark.asyncio
async def test_set_assignment_of_uncached_id_still_hits_remote(cache, remote, reconciler) -> None:
    before = cache.tasks

    assert await reconciler.set_assignment("missing", "u1") is True

    assert remote.writes == [("missing", {"assignedTo": "u1", "updatedAt": SERVER_TIMESTAMP})]
    assert cache.tasks == before


@pytest.mark.asyncio
async def test_set_assignment_of_uncached_id_raises_remote_failure(cache, remote, reconciler) -> None:
    before = cache.tasks
    remote.write_error = RemoteStoreError("not found")

    with pytest.raises(RemoteStoreError):
        await reconciler.set_assignment("missing", "u1")
    assert cache.tasks == before


@pytest.mark.asyncio
async def test_strict_mode_reraises_every_failure(cache, remote) -> None:
    reconciler = TaskReconciler(cache, remote, strict=True)
    remote.write_error = RemoteStoreError("denied")

    with pytest.raises(RemoteStoreError):
        await reconciler.set_status("1", "Done")
    assert cache.get("1").status == "To Do"


@pytest.mark.asyncio
async def test_concurrent_mutations_on_disjoint_fields_do_not_undo_each_other(cache, remote, reconciler) -> None:
    remote.gate = asyncio.Event()
    remote.write_error = RemoteStoreError("status rejected")
    remote.fail_fields = {"status"}

    status_call = asyncio.create_task(reconciler.set_status("1", "Done"))
    name_call = asyncio.create_task(reconciler.set_name("1", "Renamed"))
    await settle()

    task = cache.get("1")
    assert (task.status, task.name) == ("Done", "Renamed")

    remote.gate.set()
    assert await asyncio.gather(status_call, name_call) == [False, True]

    task = cache.get("1")
    assert task.status == "To Do"
    assert task.name == "Renamed"


@pytest.mark.asyncio
async def test_cancelled_write_rolls_back(cache, remote, reconciler) -> None:
    remote.gate = asyncio.Event()

    call = asyncio.create_task(reconciler.set_status("1", "Done"))
    await settle()
    assert cache.get("1").status == "Done"

    call.cancel()
    with pytest.raises(asyncio.CancelledError):
        await call
    assert cache.get("1").status == "To Do"


# ---- delivery vs. in-flight mutation: last event wins ----


async def _subscribed(remote: FakeRemoteStore) -> tuple[TaskCache, TaskReconciler]:
    remote.initial["g1"] = [doc("1", name="A", status="To Do", groupCode="g1")]
    cache = TaskCache()
    result = await subscribe_group(cache, remote, "g1")
    assert result.ok
    return cache, TaskReconciler(cache, remote)


@pytest.mark.asyncio
async def test_delivery_mid_flight_then_failure_rollback_lands_last(remote) -> None:
    cache, reconciler = await _subscribed(remote)
    remote.gate = asyncio.Event()
    remote.write_error = RemoteStoreError("offline")

    call = asyncio.create_task(reconciler.set_status("1", "In Progress"))
    await settle()

    remote.push([doc("1", name="A", status="Done", groupCode="g1")])
    assert cache.get("1").status == "Done"

    remote.gate.set()
    assert await call is False
    assert cache.get("1").status == "To Do"


@pytest.mark.asyncio
async def test_delivery_mid_flight_then_success_keeps_delivered_value(remote) -> None:
    cache, reconciler = await _subscribed(remote)
    remote.gate = asyncio.Event()

    call = asyncio.create_task(reconciler.set_status("1", "In Progress"))
    await settle()

    remote.push([doc("1", name="A", status="Done", groupCode="g1")])
    remote.gate.set()
    assert await call is True

    assert cache.get("1").status == "Done"


@pytest.mark.asyncio
async def test_delivery_after_resolution_wins(remote) -> None:
    cache, reconciler = await _subscribed(remote)
    remote.write_error = RemoteStoreError("offline")

    assert await reconciler.set_status("1", "In Progress") is False
    remote.push([doc("1", name="A", status="Done", groupCode="g1")])

    assert cache.get("1").status == "Done"


@pytest.mark.asyncio
async def test_rollback_skipped_when_delivery_dropped_the_task(remote) -> None:
    cache, reconciler = await _subscribed(remote)
    remote.gate = asyncio.Event()
    remote.write_error = RemoteStoreError("offline")

    call = asyncio.create_task(reconciler.set_status("1", "In Progress"))
    await settle()

    remote.push([doc("9", name="Other", groupCode="g1")])
    remote.gate.set()
    assert await call is False

    assert [t.id for t in cache.tasks] == ["9"]
