# src/task_mirror/remote/polling.py

from __future__ import annotations

"""
Polling-backed push subscription.

A small loop that:
- fetches the full matching set once at start (failure here means "not established"),
- re-fetches every interval_seconds, or immediately when woken by a local write,
- delivers only when the set differs from the last delivery.

To stop it, call cancel().
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable

from ..core.ports import ErrorCallback, RemoteDocument, SnapshotCallback
from ..errors import SubscriptionError

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[list[RemoteDocument]]]


def _fingerprint(docs: list[RemoteDocument]) -> tuple[tuple[str, str], ...]:
    return tuple((d.id, json.dumps(d.data, sort_keys=True, default=str)) for d in docs)


class PollingSubscription:
    def __init__(
            self,
            name: str,
            fetch: Fetcher,
            on_snapshot: SnapshotCallback,
            on_error: ErrorCallback | None = None,
            *,
            interval_seconds: float = 2.0,
    ) -> None:
        self.name = name
        self._fetch = fetch
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._interval = max(0.01, float(interval_seconds))
        self._wake = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._last: tuple[tuple[str, str], ...] | None = None
        self._cancelled = False

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done() and not self._cancelled

    async def start(self) -> None:
        try:
            docs = await self._fetch()
        except Exception as e:
            raise SubscriptionError(f"Failed to establish subscription {self.name}: {e}") from e

        self._deliver(docs)
        self._task = asyncio.create_task(self._run(), name=f"subscription:{self.name}")
        logger.debug("Subscription started %s (interval=%.2fs)", self.name, self._interval)

    def wake(self) -> None:
        """Ask for an immediate re-fetch (e.g. after a write through the same store)."""
        self._wake.set()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.debug("Subscription stopped %s", self.name)

    async def _run(self) -> None:
        while not self._cancelled:
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
            except TimeoutError:
                pass
            self._wake.clear()

            try:
                docs = await self._fetch()
            except Exception as e:
                logger.exception("Subscription fetch failed %s", self.name)
                self._report(e)
                continue

            self._deliver(docs)

    def _deliver(self, docs: list[RemoteDocument]) -> None:
        if self._cancelled:
            return
        fp = _fingerprint(docs)
        if fp == self._last:
            return
        self._last = fp
        try:
            self._on_snapshot(docs)
        except Exception:
            logger.exception("Snapshot callback failed %s", self.name)

    def _report(self, exc: Exception) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(exc)
        except Exception:
            logger.exception("Error callback failed %s", self.name)
