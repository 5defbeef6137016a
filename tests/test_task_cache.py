# tests/test_task_cache.py

from __future__ import annotations

import pytest

from task_mirror.tasks.task_cache import TaskCache

from .fakes import make_task


def test_replace_all_is_a_full_replacement() -> None:
    cache = TaskCache([make_task("1"), make_task("2")])

    cache.replace_all([make_task("3"), make_task("1", status="Done")])

    assert [t.id for t in cache.tasks] == ["3", "1"]
    assert cache.get("1").status == "Done"
    assert cache.get("2") is None


def test_replace_all_keeps_first_of_duplicate_ids() -> None:
    cache = TaskCache()

    cache.replace_all([make_task("1", name="first"), make_task("1", name="second"), make_task("2")])

    assert len(cache) == 2
    assert cache.get("1").name == "first"


def test_patch_updates_only_given_fields() -> None:
    cache = TaskCache([make_task("1", priority="Low")])
    before = cache.get("1")

    after = cache.patch("1", status="Done")

    assert after is not None
    assert after.status == "Done"
    assert after.priority == "Low"
    # Records are replaced, never edited in place.
    assert before.status == "To Do"


def test_patch_missing_id_returns_none() -> None:
    cache = TaskCache([make_task("1")])

    assert cache.patch("nope", status="Done") is None
    assert cache.tasks == (make_task("1"),)


def test_patch_rejects_immutable_fields() -> None:
    cache = TaskCache([make_task("1")])

    with pytest.raises(ValueError):
        cache.patch("1", group_code="other")
    with pytest.raises(ValueError):
        cache.patch("1", id="2")


def test_remove() -> None:
    cache = TaskCache([make_task("1"), make_task("2")])

    assert cache.remove("1") is True
    assert cache.remove("1") is False
    assert "1" not in cache
    assert "2" in cache


def test_snapshot_is_not_affected_by_later_changes() -> None:
    cache = TaskCache([make_task("1")])
    snapshot = cache.tasks

    cache.patch("1", name="changed")
    cache.replace_all([])

    assert snapshot[0].name == "Task 1"


def test_listeners_receive_every_change_and_can_unsubscribe() -> None:
    cache = TaskCache([make_task("1")])
    seen: list[int] = []

    remove = cache.add_listener(lambda tasks: seen.append(len(tasks)))
    cache.replace_all([make_task("1"), make_task("2")])
    cache.patch("2", name="x")
    cache.remove("1")
    remove()
    cache.replace_all([])

    assert seen == [2, 2, 1]


def test_failing_listener_does_not_break_others() -> None:
    cache = TaskCache()
    seen: list[int] = []

    def broken(_tasks) -> None:
        raise RuntimeError("boom")

    cache.add_listener(broken)
    cache.add_listener(lambda tasks: seen.append(len(tasks)))
    cache.replace_all([make_task("1")])

    assert seen == [1]
    assert len(cache) == 1
